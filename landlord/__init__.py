"""
Landlord: automatic multi-tenant scoping for SQLAlchemy models.

Every query and every new row of a tenant-aware model is filtered and
stamped by the tenants registered for the current request, without call
sites repeating ``WHERE organization_id = ?``.

Key Components:
    - ScopeRule: query narrowing and create stamping for one tenant column
    - TenantRegistry: active tenant bindings and the scoping hooks
    - BelongsToTenants: mixin for tenant-aware models
    - HasForeignKeyName: mixin for tenant-owner models
    - install_tenant_scoping: session listeners that fire the hooks
    - RegistryContext: binds a registry to the current request context

Example:
    from landlord import (
        BelongsToTenants, RegistryContext, install_tenant_scoping,
    )

    class Invoice(Base, BelongsToTenants):
        __tablename__ = "invoices"
        __tenant_columns__ = ("organization_id",)
        ...

    install_tenant_scoping(SessionFactory)

    with RegistryContext(tenants={"organization_id": 42}):
        with SessionFactory() as session:
            session.add(Invoice(total=10))   # organization_id=42 stamped
            session.commit()
            session.scalars(select(Invoice)).all()  # only organization 42
"""

from landlord.exceptions import (
    IncompleteScopeRule,
    LandlordError,
    NullTenantValue,
    TenantModelNotFound,
    UnknownTenantColumn,
)
from landlord.scope import ScopeRule, ScopeRuleBuilder
from landlord.tenant import ByEntityReference, ByIdentifier, TenantRef
from landlord.registry import TenantRegistry
from landlord.models import BelongsToTenants, HasForeignKeyName
from landlord.context import (
    RegistryContext,
    get_current_registry,
    require_registry,
    set_current_registry,
    with_registry,
)
from landlord.events import TenantScopingHandle, install_tenant_scoping

__all__ = [
    # Errors
    "IncompleteScopeRule",
    "LandlordError",
    "NullTenantValue",
    "TenantModelNotFound",
    "UnknownTenantColumn",
    # Rules and references
    "ScopeRule",
    "ScopeRuleBuilder",
    "ByEntityReference",
    "ByIdentifier",
    "TenantRef",
    # Registry
    "TenantRegistry",
    # Models
    "BelongsToTenants",
    "HasForeignKeyName",
    # Context
    "RegistryContext",
    "get_current_registry",
    "require_registry",
    "set_current_registry",
    "with_registry",
    # Session wiring
    "TenantScopingHandle",
    "install_tenant_scoping",
]
