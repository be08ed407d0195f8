"""
Registry context management for Landlord.

Instead of one process-wide registry reached through a static facade, the
registry for the current request is kept in a context variable. Request
entry binds a registry; everything that runs inside the request (model
helpers, session listeners installed without an explicit registry) picks
it up without parameter threading.

Context variables are task-local under asyncio and thread-local for
threads that do not copy the context, so concurrent requests each see
their own registry.

Example:
    from landlord.context import RegistryContext, get_current_registry

    with RegistryContext(tenants={"organization_id": 42}) as registry:
        assert get_current_registry() is registry
        session.execute(select(Invoice))  # scoped to organization 42

    # Or bind an existing registry
    with RegistryContext(shared_registry):
        ...
"""

from contextvars import ContextVar, Token
from typing import Any, Callable, Mapping, TypeVar
import asyncio
import functools
import logging

from landlord.registry import TenantRegistry

logger = logging.getLogger(__name__)


_current_registry: ContextVar[TenantRegistry | None] = ContextVar(
    'current_tenant_registry', default=None
)


def get_current_registry() -> TenantRegistry | None:
    """Get the registry bound to the current context, or None."""
    return _current_registry.get()


def set_current_registry(registry: TenantRegistry | None) -> Token[TenantRegistry | None]:
    """Bind a registry to the current context.

    Returns:
        A Token that restores the previous registry when passed to
        ``reset_current_registry``.
    """
    return _current_registry.set(registry)


def reset_current_registry(token: Token[TenantRegistry | None]) -> None:
    _current_registry.reset(token)


def clear_current_registry() -> None:
    """Unbind the registry from the current context."""
    _current_registry.set(None)


def require_registry() -> TenantRegistry:
    """Get the current registry or raise an error.

    Raises:
        RuntimeError: If no registry is bound to the current context.
    """
    registry = get_current_registry()
    if registry is None:
        raise RuntimeError(
            "No tenant registry bound to the current context. Wrap the "
            "request in RegistryContext or pass a registry explicitly."
        )
    return registry


class RegistryContext:
    """Context manager binding a tenant registry for a block of code.

    Works as a sync and an async context manager and restores whatever
    registry was bound before on exit, so contexts nest.

    Attributes:
        registry: The registry bound while the context is active.
    """

    def __init__(
        self,
        registry: TenantRegistry | None = None,
        tenants: Mapping[Any, Any] | None = None,
    ):
        """Initialize the context.

        Args:
            registry: Registry to bind; a new one is created when omitted.
            tenants: Tenants to add to the registry, as tenant reference
                to value (or ScopeRule).
        """
        self.registry = registry if registry is not None else TenantRegistry()
        for tenant, value in (tenants or {}).items():
            self.registry.add_tenant(tenant, value)
        self._token: Token[TenantRegistry | None] | None = None

    def __enter__(self) -> TenantRegistry:
        self._token = _current_registry.set(self.registry)
        logger.debug(f"Entered registry context with tenants {list(self.registry.get_tenants())}")
        return self.registry

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any | None,
    ) -> None:
        if self._token is not None:
            _current_registry.reset(self._token)
            self._token = None
        logger.debug("Exited registry context")

    async def __aenter__(self) -> TenantRegistry:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


F = TypeVar('F', bound=Callable[..., Any])


def with_registry(registry: TenantRegistry) -> Callable[[F], F]:
    """Decorator to run a sync or async function with ``registry`` bound.

    Example:
        @with_registry(admin_registry)
        def nightly_report():
            ...
    """
    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                async with RegistryContext(registry):
                    return await func(*args, **kwargs)
            return async_wrapper  # type: ignore
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
                with RegistryContext(registry):
                    return func(*args, **kwargs)
            return sync_wrapper  # type: ignore

    return decorator
