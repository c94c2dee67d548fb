"""Error handling utilities and decorators."""

import asyncio
import functools
import logging
from typing import Any, Callable, Iterable, TypeVar, cast

from ..types import CollaboratorError, ExternalAPIError, ValidationError

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def collaborator_boundary(service: str) -> Callable[[F], F]:
    """
    Decorator for search-source coroutines.

    Errors that already describe an external failure pass through unchanged;
    anything else (a KeyError on an unexpected payload, a broken XML feed)
    is logged and re-raised as CollaboratorError so callers only have to
    handle one exception type per source.

    Args:
        service: Source name reported on the raised error
    """
    def decorator(func: F) -> F:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"{func.__name__} must be a coroutine function")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except ExternalAPIError:
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected error in {service}.{func.__name__}: {e}",
                    extra={
                        "service": service,
                        "function": func.__name__,
                        "exception_type": type(e).__name__,
                    },
                    exc_info=True
                )
                raise CollaboratorError(
                    f"{service} returned data that could not be processed: {e}",
                    service=service
                ) from e

        return cast(F, wrapper)

    return decorator


def validate_style(style: str, available: Iterable[str]) -> str:
    """Validate that a citation style is supported and return its canonical name."""
    normalized = (style or "").strip().lower()
    choices = list(available)
    if normalized not in choices:
        raise ValidationError(
            f"Unsupported citation style: {style}. Available styles: {', '.join(choices)}",
            field="style"
        )
    return normalized


def validate_source(source: str, available: Iterable[str]) -> str:
    """Validate that a search source name is registered."""
    choices = list(available)
    if source not in choices:
        raise ValidationError(
            f"Unknown search source: {source}. Available sources: {', '.join(choices)}",
            field="source"
        )
    return source
