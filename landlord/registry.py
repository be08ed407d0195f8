"""
Tenant registry: the active tenant bindings and the scoping hooks.

The registry maps tenant column names to ScopeRules and applies them to
tenant-aware models at two lifecycle moments:

- when a query is built for a model (``apply_scopes_to_query``), one named
  restriction per matching tenant column is registered on the model;
- when a new row is about to be persisted (``on_entity_create``), the
  tenant columns of the row are stamped.

Only the intersection of the registry's tenants and the model's declared
tenant columns is ever applied. Models seen while no tenant is registered
are queued and replayed by ``apply_scopes_to_deferred_entities`` once a
tenant exists.

Example:
    from landlord.registry import TenantRegistry

    registry = TenantRegistry()
    registry.add_tenant("organization_id", 42)
    registry.add_tenant(current_team)  # team_id = current_team.id

    registry.apply_scopes_to_query(Invoice)
    stmt = Invoice.scoped_query()
    # SELECT ... WHERE invoices.organization_id = 42 AND invoices.team_id = ...
"""

from types import MappingProxyType
from typing import Any, Iterable, Mapping
import logging
import threading

from landlord.config.settings import settings
from landlord.exceptions import NullTenantValue, UnknownTenantColumn
from landlord.scope import ScopeRule
from landlord.tenant import (
    ByEntityReference,
    ByIdentifier,
    TenantRef,
    primary_key_value,
    to_tenant_ref,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _model_class(entity: Any) -> type:
    return entity if isinstance(entity, type) else type(entity)


def _entity_name(entity: Any) -> str:
    return _model_class(entity).__name__


def _owner_key(tenant: Any) -> Any:
    """Primary key of a tenant-owner reference, or None for column names."""
    if isinstance(tenant, ByEntityReference):
        return tenant.primary_key
    if tenant is None or isinstance(tenant, (str, ByIdentifier, type)):
        return None
    return primary_key_value(tenant)


class TenantRegistry:
    """Holds tenant bindings and applies them to tenant-aware models.

    One registry is normally created per process or per request context
    (see ``landlord.context``). Mutations and hooks are serialized by an
    internal re-entrant lock, so a registry shared by threads is never
    observed half-updated; per-request tenant values still need one
    registry per request.

    Attributes:
        _enabled: Whether hooks have any effect.
        _tenants: Tenant column name to ScopeRule.
        _deferred: Models seen before any tenant was registered.
    """

    def __init__(self, enabled: bool | None = None):
        """Initialize the registry.

        Args:
            enabled: Initial state; defaults to ``LANDLORD_ENABLED``.
        """
        self._enabled = settings.LANDLORD_ENABLED if enabled is None else enabled
        self._tenants: dict[str, ScopeRule] = {}
        self._deferred: list[Any] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        """Enable scoping by tenant columns."""
        self._enabled = True
        logger.debug("Tenant scoping enabled")

    def disable(self) -> None:
        """Disable scoping by tenant columns.

        Bindings and deferred models are kept; hooks become no-ops until
        ``enable()`` is called.
        """
        self._enabled = False
        logger.warning("Tenant scoping disabled")

    # ------------------------------------------------------------------
    # Tenant bindings
    # ------------------------------------------------------------------

    def add_tenant(self, tenant: TenantRef | Any, value: Any = _UNSET) -> None:
        """Add a tenant to scope by.

        The value is checked before the column is resolved, so a missing
        value is reported as such even for an unusable ``tenant``.

        Args:
            tenant: A column name, a ``ByIdentifier`` / ``ByEntityReference``,
                or a tenant-owner model instance.
            value: The tenant value, or a prebuilt ScopeRule. When omitted
                and ``tenant`` is a model, its primary key is used.

        Raises:
            NullTenantValue: If no value can be resolved.
            UnknownTenantColumn: If ``tenant`` does not name a column.
        """
        if value is _UNSET:
            value = _owner_key(tenant)
        if value is None:
            raise NullTenantValue("Tenant value must not be None")

        identifier = to_tenant_ref(tenant).identifier
        if isinstance(value, ScopeRule):
            rule = value
        else:
            rule = ScopeRule.for_value(identifier, value)

        with self._lock:
            replaced = identifier in self._tenants
            self._tenants[identifier] = rule

        if isinstance(value, ScopeRule):
            logger.info(f"Registered custom scope for tenant {identifier}")
        else:
            logger.info(
                f"{'Replaced' if replaced else 'Registered'} tenant {identifier}={value!r}"
            )

    def remove_tenant(self, tenant: TenantRef | Any) -> None:
        """Stop scoping by a tenant. Removing an unknown tenant is a no-op.

        Raises:
            UnknownTenantColumn: If ``tenant`` does not name a column.
        """
        identifier = to_tenant_ref(tenant).identifier
        with self._lock:
            removed = self._tenants.pop(identifier, None)
        if removed is not None:
            logger.info(f"Removed tenant {identifier}")

    def has_tenant(self, tenant: TenantRef | Any) -> bool:
        """Whether a tenant is currently being scoped."""
        return to_tenant_ref(tenant).identifier in self._tenants

    def get_tenants(self) -> Mapping[str, ScopeRule]:
        """Read-only snapshot of the current bindings."""
        with self._lock:
            return MappingProxyType(dict(self._tenants))

    def get_tenant_id(self, tenant: TenantRef | Any) -> ScopeRule:
        """Return the ScopeRule bound to a tenant.

        Raises:
            UnknownTenantColumn: If the tenant is not registered.
        """
        identifier = to_tenant_ref(tenant).identifier
        try:
            return self._tenants[identifier]
        except KeyError:
            raise UnknownTenantColumn(f"Tenant {identifier!r} is not registered") from None

    def model_tenants(self, entity: Any) -> dict[str, ScopeRule]:
        """The bindings applicable to ``entity``'s declared tenant columns."""
        columns = entity.get_tenant_columns()
        with self._lock:
            return {
                identifier: rule
                for identifier, rule in self._tenants.items()
                if identifier in columns
            }

    @property
    def pending_entities(self) -> tuple[Any, ...]:
        """Models queued before any tenant was registered.

        Each object appears once, in the order it was first queued; queuing
        the same object again (by identity) is ignored.
        """
        return tuple(self._deferred)

    def reset(self) -> None:
        """Drop all bindings and deferred models and re-enable scoping."""
        with self._lock:
            self._tenants.clear()
            self._deferred.clear()
            self._enabled = settings.LANDLORD_ENABLED

    # ------------------------------------------------------------------
    # Scoping hooks
    # ------------------------------------------------------------------

    def apply_scopes_to_query(self, entity: Any) -> None:
        """Register tenant restrictions on a model's queries.

        Deferred when no tenant is registered yet. Restrictions are named
        after their tenant column, so applying twice replaces rather than
        duplicates them.
        """
        if not self._enabled:
            return

        with self._lock:
            if not self._tenants:
                self._defer(entity)
                return

            for identifier, rule in self.model_tenants(entity).items():
                self._add_scope_to_query(entity, identifier, rule)

    def apply_scopes_to_deferred_entities(self) -> None:
        """Apply current tenant restrictions to models queued earlier.

        Only query narrowing is replayed; deferred models are not stamped.
        The queue is emptied even for models with no matching tenant.
        Nothing happens while disabled or while no tenant is registered.
        """
        if not self._enabled:
            return

        with self._lock:
            if not self._tenants or not self._deferred:
                return

            deferred, self._deferred = self._deferred, []
            for entity in deferred:
                for identifier, rule in self.model_tenants(entity).items():
                    self._add_scope_to_query(entity, identifier, rule)

        logger.info(f"Applied tenant scopes to {len(deferred)} deferred model(s)")

    def narrow_statement(self, stmt: Any, entity: Any, without: Iterable[str] = ()) -> Any:
        """Run the query hook for ``entity`` and narrow ``stmt`` by this registry's tenants.

        The rules are taken from this registry under its lock, never from
        the restrictions stored on the model class, which another registry
        may have replaced in the meantime.

        Args:
            stmt: The statement to narrow.
            entity: The tenant-aware model class or instance.
            without: Tenant names to leave out.
        """
        if not self._enabled:
            return stmt

        skipped = frozenset(without)
        model = _model_class(entity)
        with self._lock:
            self.apply_scopes_to_query(entity)
            rules = self.model_tenants(entity)

        for identifier, rule in rules.items():
            if identifier not in skipped:
                stmt = rule.narrow(stmt, model)
        return stmt

    def on_entity_create(self, entity: Any) -> None:
        """Stamp tenant columns on a new model instance before it is saved."""
        if not self._enabled:
            return

        with self._lock:
            if not self._tenants:
                self._defer(entity)
                return

            for identifier, rule in self.model_tenants(entity).items():
                rule.stamp(entity)
                logger.debug(f"Stamped {identifier} on new {_entity_name(entity)}")

    def query_without_tenant_scopes(self, entity: Any) -> Any:
        """A fresh query for ``entity``'s model with every tenant restriction removed.

        All registered tenant names are excluded, whether or not the model
        declares them.
        """
        with self._lock:
            names = tuple(self._tenants)
        return entity.query_without_restrictions(names)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _defer(self, entity: Any) -> None:
        """Queue ``entity`` for replay unless the same object is already queued."""
        if any(queued is entity for queued in self._deferred):
            return
        self._deferred.append(entity)
        logger.debug(f"No tenants registered yet, deferring {_entity_name(entity)}")

    def _add_scope_to_query(self, entity: Any, identifier: str, rule: ScopeRule) -> None:
        def restriction(query: Any, model: Any) -> Any:
            return rule.narrow(query, model)

        entity.add_tenant_restriction(identifier, restriction)
        logger.debug(f"Added {identifier} restriction to {_entity_name(entity)}")
