"""
Tenant context management for the credential vault.

Every vault operation runs for exactly one tenant. The current tenant is kept
in thread-local storage so log records and errors raised deep inside a
request can be attributed without threading the id through every call.
"""

import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, Optional, Union

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger


class TenantContext:
    """
    Manages tenant context throughout the application using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Set the current tenant ID for the execution context.

        Args:
            tenant_id: ID of the tenant

        Raises:
            ValidationError: If tenant_id is empty or invalid
        """
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )

        cls._thread_local.tenant_id = tenant_id.strip()
        get_logger().debug(f"Current tenant set to: {tenant_id}")

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        """Get the current tenant ID, or None if not set."""
        return getattr(cls._thread_local, "tenant_id", None)

    @classmethod
    def clear_current_tenant(cls) -> None:
        if hasattr(cls._thread_local, "tenant_id"):
            delattr(cls._thread_local, "tenant_id")


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """
    Context manager for tenant operations.

    Sets the current tenant for the duration of the context and restores the
    previous one afterward.

    Args:
        tenant_id: ID of the tenant
    """
    previous_tenant = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear_current_tenant()


def tenant_aware(func: Optional[Callable] = None, *, tenant_arg: str = "tenant_id"):
    """
    Decorator that runs a method inside the tenant context named by one of its arguments.

    The tenant id is read from the keyword argument ``tenant_arg`` or, for
    methods, the first positional argument after ``self``.

    Usage:
        @tenant_aware
        def resolve(self, tenant_id, service): ...
    """

    def decorator(inner: Callable) -> Callable:
        @wraps(inner)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tenant_id: Union[str, None] = kwargs.get(tenant_arg)
            if tenant_id is None and len(args) > 1:
                tenant_id = args[1]

            if not tenant_id or not isinstance(tenant_id, str):
                raise ValidationError(
                    "No tenant ID provided for tenant-aware function",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field=tenant_arg,
                )

            with tenant_context(tenant_id):
                return inner(*args, **kwargs)

        return wrapper

    if callable(func):
        return decorator(func)
    return decorator
