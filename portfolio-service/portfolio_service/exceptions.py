"""
Exceptions for Portfolio Service

Every exception that reaches a client derives from PortfolioServiceException and
is rendered by the handler registered in main.py as {"code": ..., "message": ...}.
"""
from typing import Dict, Optional


class PortfolioServiceException(Exception):
    """Base exception carrying an HTTP status and an application error code"""

    status: int = 500
    code: int = -50000
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(PortfolioServiceException):
    """Malformed pagination, filter or body input"""

    status = 400
    code = -40000
    message = "Invalid request"


class UnauthorizedError(PortfolioServiceException):
    """Operation requires an authenticated caller"""

    status = 401
    code = -40100
    message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(PortfolioServiceException):
    """Caller is authenticated but does not own the resource"""

    status = 403
    code = -40300
    message = "You don't have permission to modify this portfolio"


class NotFoundError(PortfolioServiceException):
    """Portfolio does not exist (or is not visible to the caller)"""

    status = 404
    code = -40400
    message = "Portfolio not found"


class ConflictError(PortfolioServiceException):
    """Concurrent like toggles could not be resolved by retrying"""

    status = 409
    code = -40900
    message = "Like state changed concurrently, please retry"


class UpstreamUnavailableError(PortfolioServiceException):
    """A required upstream (store, and for search also the index) is unavailable"""

    status = 503
    code = -50300
    message = "Search is temporarily unavailable"


class StoreUnavailableError(UpstreamUnavailableError):
    """Portfolio store timed out or refused the connection; safe to retry"""

    code = -50301
    message = "Portfolio store is temporarily unavailable"

    def __init__(self, message: Optional[str] = None, retry_after: int = 1):
        super().__init__(message)
        self.headers = {"Retry-After": str(retry_after)}


# Internal exceptions, never rendered to clients

class SearchIndexError(Exception):
    """Search index unreachable, timed out or returned an unusable payload"""


class LikeConflictError(Exception):
    """A concurrent toggle for the same (portfolio, user) pair won the race"""
