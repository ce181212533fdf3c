"""
Tagged success/failure result returned by domain services.

Routers consume a ServiceResult instead of catching domain exceptions:
`unwrap()` hands back the value, or re-raises the carried APIException so
FastAPI renders it with its status code and error_code.
"""
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar
import logging

from core.exceptions import APIException, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result of a domain operation."""
    success: bool
    value: Optional[T] = None
    error: Optional[APIException] = None

    @classmethod
    def ok(cls, value: T = None) -> "ServiceResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: APIException) -> "ServiceResult[T]":
        return cls(success=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error is not None else None

    def unwrap(self) -> T:
        if not self.success:
            raise self.error
        return self.value


def run_service(operation: Callable[..., T], *args: Any, **kwargs: Any) -> ServiceResult[T]:
    """
    Run a domain operation and tag its outcome.

    APIExceptions become failures as-is. Anything else is an upstream
    failure: the cause is logged and a generic retryable error is returned.
    """
    try:
        return ServiceResult.ok(operation(*args, **kwargs))
    except APIException as e:
        return ServiceResult.fail(e)
    except Exception as e:
        logger.exception("Upstream failure in %s: %s", getattr(operation, "__name__", operation), e)
        return ServiceResult.fail(UpstreamError(cause=e))
