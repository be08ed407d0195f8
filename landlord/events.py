"""
SQLAlchemy session wiring for tenant scoping.

``install_tenant_scoping`` connects a ``Session`` class or ``sessionmaker``
to a tenant registry:

- ``do_orm_execute``: ORM ``SELECT`` statements get the active tenant
  restrictions of every tenant-aware model they load. Deferred models are
  replayed first once the registry has tenants.
- ``before_flush``: new tenant-aware instances are stamped with the
  current tenant values before their ``INSERT`` is emitted.

Example:
    from sqlalchemy.orm import sessionmaker
    from landlord.events import install_tenant_scoping

    Session = sessionmaker(engine)
    handle = install_tenant_scoping(Session, registry)

    with Session() as session:
        session.add(Invoice(total=10))  # organization_id stamped on flush
        session.commit()
        session.scalars(select(Invoice)).all()  # WHERE invoices.organization_id = ...

    handle.remove()
"""

from dataclasses import dataclass, field
from typing import Any, Callable
import logging

from sqlalchemy import Select, event
from sqlalchemy.orm import ORMExecuteState, Session

from landlord.context import get_current_registry
from landlord.models.tenant import (
    SCOPED_OPTION,
    WITHOUT_SCOPES_OPTION,
    BelongsToTenants,
    scope_statement,
)
from landlord.registry import TenantRegistry

logger = logging.getLogger(__name__)


@dataclass
class TenantScopingHandle:
    """Listeners installed by ``install_tenant_scoping``.

    Attributes:
        target: The Session class or sessionmaker listened on.
        listeners: Event name and listener function pairs.
    """

    target: Any
    listeners: list[tuple[str, Callable[..., Any]]] = field(default_factory=list)

    def remove(self) -> None:
        """Detach every listener from the target."""
        for name, fn in self.listeners:
            if event.contains(self.target, name, fn):
                event.remove(self.target, name, fn)
        self.listeners.clear()


def _is_tenant_aware(cls: Any) -> bool:
    return isinstance(cls, type) and issubclass(cls, BelongsToTenants)


def install_tenant_scoping(
    target: Any = Session,
    registry: TenantRegistry | None = None,
) -> TenantScopingHandle:
    """Install the scoping listeners on ``target``.

    Args:
        target: A Session subclass, a sessionmaker, or ``Session`` itself
            (all sessions).
        registry: Registry to use. When None, the registry bound to the
            current context is looked up on every event, and events outside
            any registry context are left untouched.

    Returns:
        A handle whose ``remove()`` uninstalls the listeners.
    """

    def resolve() -> TenantRegistry | None:
        return registry if registry is not None else get_current_registry()

    def on_execute(state: ORMExecuteState) -> None:
        if not state.is_select or state.is_column_load:
            return
        if not isinstance(state.statement, Select):
            return
        options = state.execution_options
        if options.get(SCOPED_OPTION):
            return
        current = resolve()
        if current is None or not current.enabled:
            return

        current.apply_scopes_to_deferred_entities()
        without = frozenset(options.get(WITHOUT_SCOPES_OPTION, ()))

        stmt = state.statement
        for mapper in state.all_mappers:
            if _is_tenant_aware(mapper.class_):
                stmt = scope_statement(stmt, mapper.class_, current, without)
        state.statement = stmt

    def on_before_flush(session: Session, flush_context: Any, instances: Any) -> None:
        current = resolve()
        if current is None:
            return
        for obj in list(session.new):
            if isinstance(obj, BelongsToTenants):
                current.on_entity_create(obj)

    handle = TenantScopingHandle(target=target)
    for name, fn in (("do_orm_execute", on_execute), ("before_flush", on_before_flush)):
        event.listen(target, name, fn)
        handle.listeners.append((name, fn))

    logger.info(f"Installed tenant scoping on {getattr(target, '__name__', target)!r}")
    return handle
