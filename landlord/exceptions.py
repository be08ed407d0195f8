"""Exceptions raised by the tenant registry and scoped models."""

from typing import Any


class LandlordError(Exception):
    """Base exception for tenant scoping errors."""
    pass


class NullTenantValue(LandlordError):
    """Raised when a tenant is registered without a usable value."""
    pass


class UnknownTenantColumn(LandlordError):
    """Raised when a tenant reference cannot be resolved to a column name,
    or when a lookup targets a tenant that is not registered."""
    pass


class IncompleteScopeRule(LandlordError):
    """Raised when a scope rule builder is finished without both callbacks."""
    pass


class TenantModelNotFound(LandlordError):
    """Raised when a row exists but belongs to a tenant outside the current scope.

    Attributes:
        model: The mapped class that was queried.
        ident: The primary key that was looked up.
    """

    def __init__(self, model: type, ident: Any):
        self.model = model
        self.ident = ident
        super().__init__(
            f"No query results for model [{model.__name__}] {ident!r} "
            f"within the current tenant scope"
        )
