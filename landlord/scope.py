"""
Scope rules: the query narrowing and create stamping applied per tenant.

A ScopeRule couples two callbacks bound to one tenant column:

- ``narrow(query, entity)`` returns ``query`` restricted to the tenant.
- ``stamp(entity)`` fills the tenant column of a new entity when unset.

SQLAlchemy statements are immutable, so ``narrow`` returns the new
statement rather than mutating the one it receives.

Example:
    from landlord.scope import ScopeRule, ScopeRuleBuilder

    # Default rule: organization_id = 42
    rule = ScopeRule.for_value("organization_id", 42)

    # Custom rule for soft-partitioned data
    rule = (
        ScopeRuleBuilder()
        .with_query_narrowing(
            lambda query, entity: query.where(entity.region.in_(["eu", "uk"]))
        )
        .with_create_stamping(lambda entity: setattr(entity, "region", "eu"))
        .build()
    )
"""

from dataclasses import dataclass
from typing import Any, Callable

from landlord.exceptions import IncompleteScopeRule

NarrowFn = Callable[[Any, Any], Any]
StampFn = Callable[[Any], None]


@dataclass(frozen=True)
class EqualityNarrowing:
    """Restrict a query to rows whose tenant column equals ``value``.

    Attributes:
        identifier: The tenant column name.
        value: The tenant value captured at registration time.
    """

    identifier: str
    value: Any

    def __call__(self, query: Any, entity: Any) -> Any:
        return query.where(entity.qualified_tenant_column(self.identifier) == self.value)


@dataclass(frozen=True)
class StampIfUnset:
    """Set the tenant attribute on a new entity unless the caller already did.

    Attributes:
        identifier: The tenant column name.
        value: The tenant value captured at registration time.
    """

    identifier: str
    value: Any

    def __call__(self, entity: Any) -> None:
        if getattr(entity, self.identifier, None) is None:
            setattr(entity, self.identifier, self.value)


def _no_stamp(entity: Any) -> None:
    return None


@dataclass(frozen=True)
class ScopeRule:
    """Immutable pair of tenant callbacks.

    Attributes:
        narrow: ``(query, entity) -> query`` restricting results to a tenant.
        stamp: ``(entity) -> None`` setting the tenant on new rows.
    """

    narrow: NarrowFn
    stamp: StampFn

    def __post_init__(self) -> None:
        if not callable(self.narrow) or not callable(self.stamp):
            raise IncompleteScopeRule("ScopeRule requires callable narrow and stamp")

    @classmethod
    def for_value(cls, identifier: str, value: Any) -> "ScopeRule":
        """Build the default equality rule for a tenant column.

        Args:
            identifier: The tenant column name.
            value: The tenant value.

        Returns:
            A rule narrowing by ``identifier = value`` and stamping
            ``value`` on new entities.
        """
        return cls(
            narrow=EqualityNarrowing(identifier, value),
            stamp=StampIfUnset(identifier, value),
        )


class ScopeRuleBuilder:
    """Chained builder for custom scope rules.

    Both callbacks must be configured before ``build()``; a rule that only
    narrows queries must opt out of stamping explicitly with
    ``without_create_stamping()``.
    """

    def __init__(self) -> None:
        self._narrow: NarrowFn | None = None
        self._stamp: StampFn | None = None

    def with_query_narrowing(self, fn: NarrowFn) -> "ScopeRuleBuilder":
        self._narrow = fn
        return self

    def with_create_stamping(self, fn: StampFn) -> "ScopeRuleBuilder":
        self._stamp = fn
        return self

    def without_create_stamping(self) -> "ScopeRuleBuilder":
        self._stamp = _no_stamp
        return self

    def build(self) -> ScopeRule:
        """Finish the rule.

        Raises:
            IncompleteScopeRule: If either callback was never configured.
        """
        missing = [
            name
            for name, fn in (("query narrowing", self._narrow), ("create stamping", self._stamp))
            if fn is None
        ]
        if missing:
            raise IncompleteScopeRule(f"ScopeRule is missing {' and '.join(missing)}")
        return ScopeRule(narrow=self._narrow, stamp=self._stamp)
