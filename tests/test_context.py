"""Tests for landlord.context - registry binding per execution context."""

from __future__ import annotations

import asyncio

import pytest

from landlord.context import (
    RegistryContext,
    clear_current_registry,
    get_current_registry,
    require_registry,
    reset_current_registry,
    set_current_registry,
    with_registry,
)
from landlord.registry import TenantRegistry


@pytest.fixture(autouse=True)
def unbound():
    clear_current_registry()
    yield
    clear_current_registry()


# ===========================================================================
# Getters and setters
# ===========================================================================

class TestCurrentRegistry:
    """Tests for the module-level accessors."""

    def test_unbound_by_default(self):
        assert get_current_registry() is None

    def test_set_and_reset(self):
        registry = TenantRegistry()
        token = set_current_registry(registry)
        assert get_current_registry() is registry

        reset_current_registry(token)
        assert get_current_registry() is None

    def test_require_raises_when_unbound(self):
        with pytest.raises(RuntimeError, match="No tenant registry"):
            require_registry()

    def test_require_returns_bound(self):
        registry = TenantRegistry()
        set_current_registry(registry)
        assert require_registry() is registry


# ===========================================================================
# RegistryContext
# ===========================================================================

class TestRegistryContext:
    """Tests for the context manager."""

    def test_binds_given_registry(self):
        registry = TenantRegistry()
        with RegistryContext(registry) as bound:
            assert bound is registry
            assert get_current_registry() is registry
        assert get_current_registry() is None

    def test_creates_registry_with_tenants(self):
        with RegistryContext(tenants={"organization_id": 42, "team_id": 7}) as registry:
            assert set(registry.get_tenants()) == {"organization_id", "team_id"}

    def test_adds_tenants_to_given_registry(self):
        registry = TenantRegistry()
        RegistryContext(registry, tenants={"organization_id": 42})
        assert registry.has_tenant("organization_id")

    def test_nested_contexts_restore(self):
        outer = TenantRegistry()
        inner = TenantRegistry()

        with RegistryContext(outer):
            with RegistryContext(inner):
                assert get_current_registry() is inner
            assert get_current_registry() is outer

    def test_restores_on_exception(self):
        with pytest.raises(ValueError):
            with RegistryContext(TenantRegistry()):
                raise ValueError("boom")
        assert get_current_registry() is None

    @pytest.mark.asyncio
    async def test_async_context(self):
        registry = TenantRegistry()
        async with RegistryContext(registry) as bound:
            assert bound is registry
            assert get_current_registry() is registry
        assert get_current_registry() is None

    @pytest.mark.asyncio
    async def test_tasks_isolated(self):
        """Concurrent tasks each see the registry they bound."""

        async def worker(value: int) -> int:
            async with RegistryContext(tenants={"organization_id": value}) as registry:
                await asyncio.sleep(0)
                assert get_current_registry() is registry
                return require_registry().get_tenant_id("organization_id").stamp.value

        results = await asyncio.gather(*(worker(i) for i in range(1, 6)))
        assert results == [1, 2, 3, 4, 5]


# ===========================================================================
# with_registry decorator
# ===========================================================================

class TestWithRegistry:
    """Tests for the decorator."""

    def test_sync_function(self):
        registry = TenantRegistry()

        @with_registry(registry)
        def current():
            return get_current_registry()

        assert current() is registry
        assert get_current_registry() is None

    @pytest.mark.asyncio
    async def test_async_function(self):
        registry = TenantRegistry()

        @with_registry(registry)
        async def current():
            return get_current_registry()

        assert await current() is registry
        assert get_current_registry() is None

    def test_preserves_metadata(self):
        @with_registry(TenantRegistry())
        def nightly_report():
            """Docstring."""

        assert nightly_report.__name__ == "nightly_report"
        assert nightly_report.__doc__ == "Docstring."
