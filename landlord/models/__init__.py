"""Model mixins for tenant-aware SQLAlchemy models."""

from landlord.models.tenant import (
    SCOPED_OPTION,
    WITHOUT_SCOPES_OPTION,
    BelongsToTenants,
    HasForeignKeyName,
    scope_statement,
)

__all__ = [
    "SCOPED_OPTION",
    "WITHOUT_SCOPES_OPTION",
    "BelongsToTenants",
    "HasForeignKeyName",
    "scope_statement",
]
