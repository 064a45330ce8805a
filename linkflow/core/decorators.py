"""
Decorators for cross-cutting concerns of link flow operations.

Every user-initiated operation shows a busy indicator while it runs and
leaves at most one human-readable error message behind when it fails.
"""

from functools import wraps
from typing import Callable

import structlog

from linkflow.core.exceptions import DomainException
from linkflow.domain.state import begin_operation, end_operation, fail_operation

logger = structlog.get_logger()


def tracks_operation(operation: str) -> Callable:
    """
    Decorator for async component methods that report status on the app state.

    The decorated method's instance must expose an AppStateHolder as `state`.
    On entry the previous error is cleared and `loading` is set; a
    DomainException records its message and propagates unchanged.

    Usage:
        class TransactionViewer:
            @tracks_operation("fetch_transactions")
            async def fetch_transactions(self, user=None):
                ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            holder = self.state
            holder.apply(begin_operation)
            try:
                return await func(self, *args, **kwargs)
            except DomainException as e:
                holder.apply(fail_operation, e.message)
                logger.warning(
                    "operation_failed",
                    operation=operation,
                    error=e.message,
                    error_type=type(e).__name__,
                )
                raise
            finally:
                holder.apply(end_operation)

        return wrapper

    return decorator
