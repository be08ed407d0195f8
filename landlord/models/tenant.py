"""Tenant-aware SQLAlchemy model mixins.

- **BelongsToTenants**: declares the tenant columns of a model and carries
  the named query restrictions the registry attaches to it.
- **HasForeignKeyName**: for tenant-owner models (``Organization``,
  ``Team``...) that are passed to ``TenantRegistry.add_tenant`` directly.

Usage::

    class Organization(Base, HasForeignKeyName):
        __tablename__ = "organizations"
        id: Mapped[int] = mapped_column(primary_key=True)

    class Invoice(Base, BelongsToTenants):
        __tablename__ = "invoices"
        __tenant_columns__ = ("organization_id",)

        id: Mapped[int] = mapped_column(primary_key=True)
        organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"))

Restrictions are stored per concrete class, so a subclass never inherits
or overwrites the restrictions of its parent. They hold whatever the last
registry to hook the class registered; the session listener and
``find_or_fail`` narrow through the active registry instead.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping
import weakref

from sqlalchemy import Select, inspect as sa_inspect, select
from sqlalchemy.exc import NoResultFound

from landlord.config.settings import settings
from landlord.exceptions import TenantModelNotFound, UnknownTenantColumn
from landlord.tenant import default_foreign_key

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from landlord.registry import TenantRegistry

Restriction = Callable[[Any, Any], Any]

# Execution options understood by ``landlord.events``.
SCOPED_OPTION = "landlord_scoped"
WITHOUT_SCOPES_OPTION = "landlord_without_scopes"

_restrictions: weakref.WeakKeyDictionary[type, dict[str, Restriction]] = (
    weakref.WeakKeyDictionary()
)


# ---------------------------------------------------------------------------
# Tenant-aware models
# ---------------------------------------------------------------------------


class BelongsToTenants:
    """Mixin for models whose rows belong to one or more tenants.

    ``__tenant_columns__`` lists the tenant columns the model opts into.
    Models that leave it unset use ``LANDLORD_DEFAULT_TENANT_COLUMNS``.
    """

    __tenant_columns__ = None

    @classmethod
    def get_tenant_columns(cls) -> frozenset[str]:
        columns = cls.__tenant_columns__
        if columns is None:
            columns = settings.LANDLORD_DEFAULT_TENANT_COLUMNS
        return frozenset(columns)

    @classmethod
    def qualified_tenant_column(cls, name: str) -> Any:
        """The table-qualified column attribute for a tenant column.

        Raises:
            UnknownTenantColumn: If ``name`` is not a mapped column.
        """
        mapper = sa_inspect(cls)
        if name not in mapper.column_attrs:
            raise UnknownTenantColumn(f"{cls.__name__} has no column {name!r}")
        return getattr(cls, name)

    # -- restrictions --

    @classmethod
    def add_tenant_restriction(cls, name: str, restriction: Restriction) -> None:
        """Register a named restriction, replacing any with the same name."""
        _restrictions.setdefault(cls, {})[name] = restriction

    @classmethod
    def remove_tenant_restriction(cls, name: str) -> None:
        _restrictions.get(cls, {}).pop(name, None)

    @classmethod
    def tenant_restrictions(cls) -> Mapping[str, Restriction]:
        return MappingProxyType(_restrictions.setdefault(cls, {}))

    # -- queries --

    @classmethod
    def new_query(cls) -> Select:
        """A plain ``SELECT`` of this model."""
        return select(cls)

    @classmethod
    def scoped_query(cls, without: Iterable[str] = ()) -> Select:
        """``SELECT`` of this model with its restrictions applied.

        This is the raw form: it applies whatever restrictions are stored on
        the class. Use ``scope_statement`` to narrow by a particular registry.

        Args:
            without: Restriction names to leave out.
        """
        skipped = frozenset(without)
        stmt = cls.new_query()
        for name, restriction in list(cls.tenant_restrictions().items()):
            if name not in skipped:
                stmt = restriction(stmt, cls)
        return stmt.execution_options(**{SCOPED_OPTION: True})

    @classmethod
    def query_without_restrictions(cls, names: Iterable[str]) -> Select:
        """``SELECT`` of this model that the session listener leaves unrestricted for ``names``."""
        return cls.new_query().execution_options(
            **{WITHOUT_SCOPES_OPTION: frozenset(names)}
        )

    @classmethod
    def all_tenants(cls, registry: TenantRegistry | None = None) -> Select:
        """``SELECT`` of this model across every tenant.

        Uses the registry of the current context when none is given.
        """
        if registry is None:
            from landlord.context import require_registry

            registry = require_registry()
        return registry.query_without_tenant_scopes(cls)

    @classmethod
    def find_or_fail(
        cls,
        session: Session,
        ident: Any,
        registry: TenantRegistry | None = None,
    ) -> Any:
        """Load a row by primary key within the current tenants.

        Raises:
            TenantModelNotFound: If the row exists under another tenant.
            sqlalchemy.exc.NoResultFound: If the row does not exist.
        """
        if registry is None:
            from landlord.context import require_registry

            registry = require_registry()

        pk = sa_inspect(cls).primary_key[0]
        scoped = scope_statement(cls.new_query(), cls, registry)
        found = session.execute(
            scoped.where(pk == ident).execution_options(**{SCOPED_OPTION: True})
        ).scalar_one_or_none()
        if found is not None:
            return found

        unscoped = registry.query_without_tenant_scopes(cls).where(pk == ident)
        if session.execute(unscoped).scalar_one_or_none() is not None:
            raise TenantModelNotFound(cls, ident)
        raise NoResultFound(f"No {cls.__name__} with primary key {ident!r}")


def scope_statement(
    stmt: Any,
    entity: Any,
    registry: TenantRegistry,
    without: Iterable[str] = (),
) -> Any:
    """Run the query hook for ``entity`` and narrow ``stmt`` by ``registry``'s tenants.

    Only tenants the registry currently binds are applied, so a removed
    tenant stops filtering even though its restriction is still registered
    on the model. The class-level restrictions, which every registry writes
    to, are not consulted.
    """
    return registry.narrow_statement(stmt, entity, without)


# ---------------------------------------------------------------------------
# Tenant-owner models
# ---------------------------------------------------------------------------


class HasForeignKeyName:
    """Mixin for models that own tenants.

    Instances can be passed straight to ``TenantRegistry.add_tenant``: the
    column is ``get_foreign_key()`` and the value is the primary key.
    Override ``__foreign_key__`` when the column name differs from
    ``<snake_case class name>_<primary key>``.
    """

    __foreign_key__ = None

    def get_foreign_key(self) -> str:
        return self.__foreign_key__ or default_foreign_key(type(self))

    def get_key(self) -> Any:
        values = sa_inspect(self).mapper.primary_key_from_instance(self)
        return values[0]
