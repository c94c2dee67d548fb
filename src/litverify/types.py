"""Type definitions and protocols for litverify."""

from typing import Callable, List, Optional, Protocol
from abc import abstractmethod

from .schemas.citation import CandidateRecord, ProgressState, SearchOptions


# Progress reporting: (source name, state, result count)
ProgressCallback = Callable[[str, ProgressState, Optional[int]], None]


# Service protocols
class SearchSourceProtocol(Protocol):
    """Protocol for external bibliographic search sources."""

    name: str

    @abstractmethod
    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[CandidateRecord]:
        """Search the source and return candidate records."""
        ...


# Error types
class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class ValidationError(ServiceError):
    """Validation error with field details."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, error_code="validation_error")
        self.field = field


class ExternalAPIError(ServiceError):
    """External API service error."""

    def __init__(self, message: str, service: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, error_code="external_api_error")
        self.service = service
        self.status_code = status_code


class CollaboratorError(ExternalAPIError):
    """A search source failed after retries or returned malformed data."""
