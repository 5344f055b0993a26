from .repositories import PortfolioRepository


__all__ = [
    # repositories.py
    "PortfolioRepository",
]
