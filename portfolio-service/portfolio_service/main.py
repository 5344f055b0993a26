"""
FastAPI application for Portfolio Service
"""
from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .config import settings
from .database import db, get_db, Database
from .cache import cache
from .kafka_producer import kafka_producer, get_kafka_producer, KafkaProducerManager
from .service_client import service_client, get_service_client, ServiceClient
from .search_client import search_client, get_search_client, SearchClient
from .dependencies import get_current_user, get_current_user_optional
from .domain.repositories import IPortfolioRepository
from .infrastructure.repositories import PortfolioRepository
from .application.providers import IndexProvider, StoreProvider
from .application.discovery import DiscoveryResolver, build_query
from .application.engagement import EngagementCoordinator
from .application.portfolios import PortfolioService
from .exceptions import PortfolioServiceException, ValidationError
from .schemas import (
    User,
    PortfolioCreate,
    PortfolioUpdate,
    PortfolioResponse,
    PortfolioListResponse,
    SearchResponse,
    ViewResponse,
    LikeToggleResponse,
    LikeStatusResponse,
    MessageResponse,
    HealthResponse,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Portfolio Service...")

    await db.connect()
    await db.init_schema()
    logger.info("Database connected")

    await cache.connect()
    logger.info("Redis cache initialized")

    await kafka_producer.start()
    await service_client.start()
    await search_client.start()

    logger.info(f"Portfolio Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Portfolio Service...")

    await search_client.stop()
    await service_client.stop()
    await kafka_producer.stop()
    await cache.disconnect()
    await db.disconnect()

    logger.info("Portfolio Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Portfolio Service - Portfolio discovery, views and likes",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortfolioServiceException)
async def portfolio_exception_handler(request: Request, exc: PortfolioServiceException):
    return JSONResponse(
        status_code=exc.status,
        content={"code": exc.code, "message": exc.message},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed query or path parameters share the ValidationError shape"""
    errors = exc.errors()
    if errors and all(error["loc"] and error["loc"][0] in ("query", "path") for error in errors):
        first = errors[0]
        return await portfolio_exception_handler(
            request, ValidationError(f"Invalid {first['loc'][-1]}: {first['msg']}")
        )
    return await request_validation_exception_handler(request, exc)


# Helper functions to get service instances
def get_repository(db: Database = Depends(get_db)) -> IPortfolioRepository:
    """Get PortfolioRepository bound to the global pool"""
    return PortfolioRepository(db)


def get_discovery_resolver(
    repository: IPortfolioRepository = Depends(get_repository),
    search: SearchClient = Depends(get_search_client),
    directory: ServiceClient = Depends(get_service_client),
) -> DiscoveryResolver:
    """Get DiscoveryResolver with index and store providers"""
    return DiscoveryResolver(IndexProvider(search), StoreProvider(repository), directory)


def get_engagement_coordinator(
    repository: IPortfolioRepository = Depends(get_repository),
    kafka: KafkaProducerManager = Depends(get_kafka_producer),
) -> EngagementCoordinator:
    """Get EngagementCoordinator instance with dependencies"""
    return EngagementCoordinator(repository, kafka)


def get_portfolio_service(
    repository: IPortfolioRepository = Depends(get_repository),
    directory: ServiceClient = Depends(get_service_client),
    kafka: KafkaProducerManager = Depends(get_kafka_producer),
) -> PortfolioService:
    """Get PortfolioService instance with dependencies"""
    return PortfolioService(repository, directory, kafka)


def _viewer_id(user: Optional[User]) -> Optional[str]:
    return user.id if user else None


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(
    repository: IPortfolioRepository = Depends(get_repository),
    search: SearchClient = Depends(get_search_client),
):
    """Health check endpoint; the index is optional, the store is not"""
    database_ok = await repository.ping()
    index_ok = await search.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        service=settings.APP_NAME,
        database=database_ok,
        search_index=index_ok,
    )


# Discovery endpoints
@app.get(
    "/api/v1/portfolios/search",
    response_model=SearchResponse,
    tags=["Discovery"],
    summary="Search portfolios",
)
async def search_portfolios(
    q: Optional[str] = Query(None, description="Full-text query"),
    page: int = Query(1, description="Page number (1-indexed)"),
    limit: Optional[int] = Query(None, description="Items per page"),
    status_filter: Optional[str] = Query(None, alias="status"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    category: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, description="newest, oldest, most_viewed or most_liked"),
    current_user: Optional[User] = Depends(get_current_user_optional),
    resolver: DiscoveryResolver = Depends(get_discovery_resolver),
):
    """
    Search portfolios

    - Served by the search index when it is healthy
    - Falls back to direct store filtering otherwise, with the same result shape
    """
    query = build_query(
        q, page, limit, status_filter, is_public, category, sort, _viewer_id(current_user)
    )
    return SearchResponse.from_domain(await resolver.search(query))


@app.get(
    "/api/v1/portfolios",
    response_model=SearchResponse,
    tags=["Discovery"],
    summary="Browse portfolios",
)
async def list_portfolios(
    search: Optional[str] = Query(None, description="Substring filter"),
    page: int = Query(1, description="Page number (1-indexed)"),
    limit: Optional[int] = Query(None, description="Items per page"),
    status_filter: Optional[str] = Query(None, alias="status"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    category: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None, description="Most liked published portfolios"),
    current_user: Optional[User] = Depends(get_current_user_optional),
    resolver: DiscoveryResolver = Depends(get_discovery_resolver),
):
    """Browse portfolios straight from the store"""
    query = build_query(
        search,
        page,
        limit,
        status_filter,
        is_public,
        category,
        sort,
        _viewer_id(current_user),
        featured=bool(featured),
    )
    return SearchResponse.from_domain(await resolver.browse(query))


@app.get(
    "/api/v1/portfolios/user/{user_id}",
    response_model=PortfolioListResponse,
    tags=["Portfolios"],
    summary="Get a user's portfolios",
)
async def get_user_portfolios(
    user_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """
    Get a user's portfolios

    Owners see all of their portfolios; everyone else sees published, public ones
    """
    portfolios = await service.list_user_portfolios(user_id, _viewer_id(current_user))
    return PortfolioListResponse(
        items=[PortfolioResponse.from_domain(p) for p in portfolios],
        total=len(portfolios),
    )


# Portfolio CRUD endpoints
@app.post(
    "/api/v1/portfolios",
    response_model=PortfolioResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Portfolios"],
    summary="Create a portfolio",
)
async def create_portfolio(
    body: PortfolioCreate,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Create a portfolio owned by the caller"""
    portfolio = await service.create_portfolio(current_user.id, body.model_dump())
    return PortfolioResponse.from_domain(portfolio)


@app.get(
    "/api/v1/portfolios/{portfolio_id}",
    response_model=PortfolioResponse,
    tags=["Portfolios"],
    summary="Get a portfolio",
)
async def get_portfolio(
    portfolio_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Get a portfolio; drafts and private ones are visible to the owner only"""
    portfolio = await service.get_portfolio(portfolio_id, _viewer_id(current_user))
    return PortfolioResponse.from_domain(portfolio)


@app.put(
    "/api/v1/portfolios/{portfolio_id}",
    response_model=PortfolioResponse,
    tags=["Portfolios"],
    summary="Update a portfolio",
)
async def update_portfolio(
    portfolio_id: str,
    body: PortfolioUpdate,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Update content fields of a portfolio the caller owns"""
    portfolio = await service.update_portfolio(
        portfolio_id, current_user.id, body.model_dump(exclude_unset=True)
    )
    return PortfolioResponse.from_domain(portfolio)


@app.delete(
    "/api/v1/portfolios/{portfolio_id}",
    response_model=MessageResponse,
    tags=["Portfolios"],
    summary="Delete a portfolio",
)
async def delete_portfolio(
    portfolio_id: str,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Delete a portfolio the caller owns, with all of its likes"""
    await service.delete_portfolio(portfolio_id, current_user.id)
    return MessageResponse(message="Portfolio deleted successfully")


# Engagement endpoints
@app.post(
    "/api/v1/portfolios/{portfolio_id}/view",
    response_model=ViewResponse,
    tags=["Engagement"],
    summary="Record a view",
)
async def increment_view(
    portfolio_id: str,
    coordinator: EngagementCoordinator = Depends(get_engagement_coordinator),
):
    """Record one view; anonymous callers allowed"""
    views = await coordinator.increment_view(portfolio_id)
    return ViewResponse(views=views)


@app.post(
    "/api/v1/portfolios/{portfolio_id}/like",
    response_model=LikeToggleResponse,
    tags=["Engagement"],
    summary="Toggle like",
)
async def toggle_like(
    portfolio_id: str,
    current_user: User = Depends(get_current_user),
    coordinator: EngagementCoordinator = Depends(get_engagement_coordinator),
):
    """
    Like the portfolio if the caller has not liked it, unlike it otherwise

    Returns the new like state and the post-toggle counter
    """
    transition = await coordinator.toggle_like(portfolio_id, current_user.id)
    return LikeToggleResponse(liked=transition.current.is_liked, likes=transition.likes)


@app.get(
    "/api/v1/portfolios/{portfolio_id}/like",
    response_model=LikeStatusResponse,
    tags=["Engagement"],
    summary="Check like status",
)
async def get_like_status(
    portfolio_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
    coordinator: EngagementCoordinator = Depends(get_engagement_coordinator),
):
    """Whether the caller likes the portfolio; false for anonymous callers"""
    liked = await coordinator.is_liked(portfolio_id, _viewer_id(current_user))
    return LikeStatusResponse(liked=liked)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portfolio_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
