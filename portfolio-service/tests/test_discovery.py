"""
Test discovery resolver: index path, store fallback and validation
"""
import pytest

from portfolio_service.application.discovery import DiscoveryResolver, build_query
from portfolio_service.application.providers import IndexProvider, StoreProvider
from portfolio_service.domain.models import PortfolioStatus, SortOrder
from portfolio_service.exceptions import (
    SearchIndexError,
    StoreUnavailableError,
    UpstreamUnavailableError,
    ValidationError,
)


@pytest.fixture
def resolver(repository, search_index, directory) -> DiscoveryResolver:
    return DiscoveryResolver(IndexProvider(search_index), StoreProvider(repository), directory)


async def seed_catalog(repository):
    """Three published portfolios, one of them about react, plus a draft"""
    await repository.seed("u1", "Vue dashboard", tags=["vue"])
    react = await repository.seed("u2", "React storefront", description="Shop built with hooks")
    await repository.seed("u3", "CLI toolkit", tags=["react-native", "cli"])
    await repository.seed("u1", "React draft", status=PortfolioStatus.DRAFT)
    return react


def ids(page):
    return [item.id for item in page.items]


@pytest.mark.asyncio
async def test_text_query_is_served_by_index(repository, search_index, resolver):
    await seed_catalog(repository)

    page = await resolver.search(build_query("react"))

    assert page.source == "index"
    assert search_index.calls == 1
    assert repository.search_calls == 0
    assert page.total == 2


@pytest.mark.asyncio
async def test_index_timeout_falls_back_to_store(repository, search_index, resolver):
    """Index times out; the store answers with the same result shape"""
    await seed_catalog(repository)
    search_index.error = SearchIndexError("Search index timed out")

    page = await resolver.search(build_query("react", page=1, limit=12))

    assert page.source == "store"
    assert page.total == 2
    assert page.page == 1
    assert page.limit == 12
    assert page.page_count == 1
    assert {item.title for item in page.items} == {"React storefront", "CLI toolkit"}
    assert all(item.owner is not None for item in page.items)


@pytest.mark.asyncio
async def test_fallback_matches_index_results(repository, search_index, resolver):
    await seed_catalog(repository)
    query = build_query("react")

    from_index = await resolver.search(query)
    search_index.error = SearchIndexError("down")
    from_store = await resolver.search(query)

    assert ids(from_index) == ids(from_store)
    assert from_index.total == from_store.total
    for a, b in zip(from_index.items, from_store.items):
        assert a.owner.id == b.owner.id


@pytest.mark.asyncio
async def test_empty_query_goes_straight_to_store(repository, search_index, resolver):
    await seed_catalog(repository)

    page = await resolver.search(build_query("   "))

    assert page.source == "store"
    assert search_index.calls == 0
    assert page.total == 3
    titles = [item.title for item in page.items]
    assert titles == ["CLI toolkit", "React storefront", "Vue dashboard"]


@pytest.mark.asyncio
async def test_draft_filter_bypasses_index(repository, search_index, resolver):
    await seed_catalog(repository)

    page = await resolver.search(build_query("react", status="draft", viewer_id="u1"))

    assert search_index.calls == 0
    assert [item.title for item in page.items] == ["React draft"]


@pytest.mark.asyncio
async def test_drafts_hidden_from_other_viewers(repository, resolver):
    await seed_catalog(repository)

    page = await resolver.search(build_query("react", status="draft", viewer_id="u2"))

    assert page.total == 0
    assert page.page_count == 0


@pytest.mark.asyncio
async def test_unavailable_index_is_skipped(repository, search_index, resolver):
    await seed_catalog(repository)
    search_index.available = False

    page = await resolver.search(build_query("react"))

    assert search_index.calls == 0
    assert page.source == "store"
    assert page.total == 2


@pytest.mark.asyncio
async def test_both_paths_down(repository, search_index, resolver):
    search_index.error = SearchIndexError("down")
    repository.fail_with = StoreUnavailableError()

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await resolver.search(build_query("react"))

    assert exc_info.value.status == 503
    assert exc_info.value.message == "Search is temporarily unavailable"


@pytest.mark.asyncio
async def test_store_pagination(repository, resolver):
    for i in range(5):
        await repository.seed("u1", f"Project {i}")

    page = await resolver.search(build_query("", page=2, limit=2))

    assert page.total == 5
    assert page.page_count == 3
    assert [item.title for item in page.items] == ["Project 2", "Project 1"]


@pytest.mark.asyncio
async def test_explicit_sort_uses_store(repository, search_index, resolver):
    a = await repository.seed("u1", "React one")
    b = await repository.seed("u2", "React two")
    a.views = 10
    b.views = 3

    page = await resolver.search(build_query("react", sort="most_viewed"))

    assert search_index.calls == 0
    assert ids(page) == [a.id, b.id]


@pytest.mark.asyncio
async def test_owner_enrichment_failure_is_not_fatal(repository, search_index):
    class BrokenDirectory:
        async def get_owner_summaries(self, user_ids):
            raise RuntimeError("user service down")

    await seed_catalog(repository)
    resolver = DiscoveryResolver(
        IndexProvider(search_index), StoreProvider(repository), BrokenDirectory()
    )

    page = await resolver.search(build_query(""))

    assert page.total == 3
    assert all(item.owner is None for item in page.items)


@pytest.mark.asyncio
async def test_index_owner_is_kept(repository, search_index, directory, resolver):
    await seed_catalog(repository)

    await resolver.search(build_query("react"))

    assert directory.lookups == []


@pytest.mark.asyncio
async def test_fallback_matches_index_for_owner_with_drafts(repository, search_index, resolver):
    """A signed-in owner gets the same results whichever path answers"""
    await repository.seed("u2", "React storefront")
    await repository.seed("u1", "React draft", status=PortfolioStatus.DRAFT)
    await repository.seed("u1", "React private", is_public=False)
    query = build_query("react", viewer_id="u1")

    from_index = await resolver.search(query)
    search_index.error = SearchIndexError("down")
    from_store = await resolver.search(query)

    assert from_store.source == "store"
    assert [item.title for item in from_index.items] == ["React storefront"]
    assert ids(from_store) == ids(from_index)
    assert from_index.total == from_store.total == 1


@pytest.mark.asyncio
async def test_owner_still_sees_drafts_when_browsing(repository, resolver):
    await repository.seed("u2", "React storefront")
    await repository.seed("u1", "React draft", status=PortfolioStatus.DRAFT)

    page = await resolver.browse(build_query("react", viewer_id="u1"))

    assert {item.title for item in page.items} == {"React storefront", "React draft"}


@pytest.mark.asyncio
async def test_text_does_not_match_across_tags(repository, search_index, resolver):
    await repository.seed("u1", "Toolkit", tags=["react", "cli"])
    search_index.error = SearchIndexError("down")

    assert (await resolver.search(build_query("t c"))).total == 0
    assert (await resolver.search(build_query("cli"))).total == 1


@pytest.mark.asyncio
async def test_featured_browse_is_most_liked_published(repository, resolver):
    modest = await repository.seed("u1", "Modest")
    popular = await repository.seed("u2", "Popular")
    draft = await repository.seed("u1", "Unfinished", status=PortfolioStatus.DRAFT)
    hidden = await repository.seed("u1", "Hidden", is_public=False)
    modest.likes, popular.likes, draft.likes, hidden.likes = 2, 9, 50, 50

    page = await resolver.browse(build_query(limit=6, viewer_id="u1", featured=True))

    assert ids(page) == [popular.id, modest.id]


class TestBuildQuery:
    def test_defaults(self):
        query = build_query()
        assert query.text == ""
        assert query.pagination.page == 1
        assert query.pagination.limit == 12

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"page": 0},
            {"limit": 0},
            {"limit": 101},
            {"status": "archived"},
            {"sort": "random"},
            {"text": "x" * 201},
        ],
    )
    def test_rejects_invalid_input(self, kwargs):
        with pytest.raises(ValidationError):
            build_query(**kwargs)

    def test_parses_filters(self):
        query = build_query("ml", status="published", is_public=True, category="AI")
        assert query.filters.status is PortfolioStatus.PUBLISHED
        assert query.filters.is_public is True
        assert query.filters.category == "AI"

    def test_featured_defaults(self):
        query = build_query(featured=True, viewer_id="u1")
        assert query.filters.status is PortfolioStatus.PUBLISHED
        assert query.filters.is_public is True
        assert query.sort is SortOrder.MOST_LIKED
        assert query.viewer_id is None

    def test_featured_keeps_explicit_sort(self):
        assert build_query(featured=True, sort="newest").sort is SortOrder.NEWEST

    @pytest.mark.parametrize("kwargs", [{"status": "draft"}, {"is_public": False}])
    def test_featured_rejects_hidden_filters(self, kwargs):
        with pytest.raises(ValidationError):
            build_query(featured=True, **kwargs)
