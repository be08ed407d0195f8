"""
Tenant references and their resolution to column names and values.

Callers may name a tenant in three ways:

- a plain column name, e.g. ``"organization_id"``;
- a tenant-owner model instance, e.g. an ``Organization`` row, whose
  foreign-key name (``organization_id``) becomes the column and whose
  primary key becomes the default value;
- an explicit ``ByIdentifier`` / ``ByEntityReference`` wrapper.

Everything is normalized once by ``to_tenant_ref`` so the registry only
ever deals with the two wrapper types.

Example:
    from landlord.tenant import ByEntityReference, to_tenant_ref

    ref = to_tenant_ref(organization)
    assert isinstance(ref, ByEntityReference)
    ref.identifier   # "organization_id"
    ref.primary_key  # organization.id
"""

from dataclasses import dataclass
from typing import Any, Union
import re

from sqlalchemy import inspect as sa_inspect

from landlord.exceptions import UnknownTenantColumn


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """Convert a class name such as ``TenantA`` to ``tenant_a``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _instance_state(entity: Any) -> Any:
    if isinstance(entity, type):
        return None
    return sa_inspect(entity, raiseerr=False)


def default_foreign_key(cls: type) -> str:
    """Derive the foreign-key column name other tables use for ``cls``.

    The name is the snake-cased class name joined to the primary key
    attribute, e.g. ``Organization`` with primary key ``id`` gives
    ``organization_id``.

    Raises:
        UnknownTenantColumn: If ``cls`` is not mapped or has a composite
            primary key.
    """
    mapper = sa_inspect(cls, raiseerr=False)
    if mapper is None:
        raise UnknownTenantColumn(f"{cls.__name__} is not a mapped class")
    if len(mapper.primary_key) != 1:
        raise UnknownTenantColumn(
            f"{cls.__name__} has a composite primary key; pass the tenant column name"
        )
    key = mapper.get_property_by_column(mapper.primary_key[0]).key
    return f"{snake_case(cls.__name__)}_{key}"


def foreign_key_name(entity: Any) -> str:
    """Return the tenant column name for a tenant-owner object.

    Objects exposing ``get_foreign_key()`` decide for themselves; any
    other mapped instance falls back to ``default_foreign_key``.

    Raises:
        UnknownTenantColumn: If the object exposes no foreign-key name.
    """
    get_foreign_key = getattr(entity, "get_foreign_key", None)
    if callable(get_foreign_key):
        name = get_foreign_key()
    elif _instance_state(entity) is not None:
        name = default_foreign_key(type(entity))
    else:
        raise UnknownTenantColumn(
            f"Tenant must be a column name or a model with a foreign key, "
            f"got {type(entity).__name__}"
        )
    if not isinstance(name, str) or not name:
        raise UnknownTenantColumn(f"Invalid foreign key name {name!r}")
    return name


def primary_key_value(entity: Any) -> Any:
    """Return the primary-key value of a tenant-owner object, or None."""
    state = _instance_state(entity)
    if state is not None:
        values = state.mapper.primary_key_from_instance(entity)
        return values[0] if len(values) == 1 else None
    get_key = getattr(entity, "get_key", None)
    if callable(get_key):
        return get_key()
    return None


@dataclass(frozen=True)
class ByIdentifier:
    """A tenant named directly by its column.

    Attributes:
        identifier: The tenant column name.
    """

    identifier: str

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or not self.identifier:
            raise UnknownTenantColumn(
                f"Tenant column must be a non-empty string, got {self.identifier!r}"
            )


@dataclass(frozen=True)
class ByEntityReference:
    """A tenant named by a tenant-owner model instance.

    Attributes:
        entity: The owner instance (e.g. an ``Organization`` row).
    """

    entity: Any

    @property
    def identifier(self) -> str:
        return foreign_key_name(self.entity)

    @property
    def primary_key(self) -> Any:
        return primary_key_value(self.entity)


TenantRef = Union[str, ByIdentifier, ByEntityReference]


def to_tenant_ref(ref: Any) -> ByIdentifier | ByEntityReference:
    """Normalize a caller-supplied tenant reference.

    Args:
        ref: A column name, a wrapper, or a tenant-owner model instance.

    Returns:
        The equivalent ``ByIdentifier`` or ``ByEntityReference``.

    Raises:
        UnknownTenantColumn: If ``ref`` cannot name a tenant column.
    """
    if isinstance(ref, (ByIdentifier, ByEntityReference)):
        return ref
    if isinstance(ref, str):
        return ByIdentifier(ref)
    if ref is None or isinstance(ref, type):
        raise UnknownTenantColumn(
            f"Tenant must be a column name or a model with a foreign key, got {ref!r}"
        )
    reference = ByEntityReference(ref)
    # Resolve eagerly so an unusable object fails at the API boundary.
    reference.identifier
    return reference
