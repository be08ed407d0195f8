"""Tests for landlord.tenant - tenant reference resolution."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from landlord.exceptions import UnknownTenantColumn
from landlord.models import HasForeignKeyName
from landlord.tenant import (
    ByEntityReference,
    ByIdentifier,
    default_foreign_key,
    foreign_key_name,
    primary_key_value,
    snake_case,
    to_tenant_ref,
)


class Base(DeclarativeBase):
    pass


class TenantA(Base, HasForeignKeyName):
    __tablename__ = "tenant_as"

    id: Mapped[int] = mapped_column(primary_key=True)


class Team(Base):
    """Mapped owner without the mixin."""

    __tablename__ = "teams"

    uid: Mapped[int] = mapped_column(primary_key=True)


class Workspace(Base, HasForeignKeyName):
    __tablename__ = "workspaces"
    __foreign_key__ = "space_id"

    id: Mapped[int] = mapped_column(primary_key=True)


class Membership(Base):
    __tablename__ = "memberships"

    user_id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(primary_key=True)


# ===========================================================================
# Naming helpers
# ===========================================================================

class TestSnakeCase:
    """Tests for class name conversion."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Organization", "organization"),
            ("TenantA", "tenant_a"),
            ("ModelStub", "model_stub"),
            ("HTTPRequest", "http_request"),
            ("Team2Member", "team2_member"),
        ],
    )
    def test_conversion(self, name, expected):
        assert snake_case(name) == expected


class TestForeignKeyName:
    """Tests for foreign key derivation."""

    def test_mixin_default(self):
        assert TenantA(id=1).get_foreign_key() == "tenant_a_id"

    def test_mixin_override(self):
        assert Workspace(id=1).get_foreign_key() == "space_id"

    def test_plain_mapped_instance_uses_pk_attribute(self):
        assert foreign_key_name(Team(uid=3)) == "team_uid"

    def test_composite_primary_key_rejected(self):
        with pytest.raises(UnknownTenantColumn, match="composite"):
            default_foreign_key(Membership)

    def test_unmapped_class_rejected(self):
        with pytest.raises(UnknownTenantColumn, match="not a mapped class"):
            default_foreign_key(SimpleNamespace)

    def test_plain_object_rejected(self):
        with pytest.raises(UnknownTenantColumn):
            foreign_key_name(object())

    def test_duck_typed_owner(self):
        """Unmapped objects may expose get_foreign_key themselves."""
        owner = SimpleNamespace(get_foreign_key=lambda: "region_id")
        assert foreign_key_name(owner) == "region_id"

    def test_empty_foreign_key_rejected(self):
        owner = SimpleNamespace(get_foreign_key=lambda: "")
        with pytest.raises(UnknownTenantColumn):
            foreign_key_name(owner)


class TestPrimaryKeyValue:
    """Tests for owner primary key lookup."""

    def test_transient_instance(self):
        assert primary_key_value(TenantA(id=5)) == 5

    def test_unset_primary_key(self):
        assert primary_key_value(TenantA()) is None

    def test_mixin_get_key(self):
        assert TenantA(id=8).get_key() == 8

    def test_duck_typed_get_key(self):
        owner = SimpleNamespace(get_foreign_key=lambda: "region_id", get_key=lambda: 12)
        assert primary_key_value(owner) == 12

    def test_unknown_object(self):
        assert primary_key_value(object()) is None


# ===========================================================================
# Reference normalization
# ===========================================================================

class TestToTenantRef:
    """Tests for to_tenant_ref."""

    def test_string_becomes_identifier(self):
        assert to_tenant_ref("organization_id") == ByIdentifier("organization_id")

    def test_wrappers_pass_through(self):
        ref = ByIdentifier("organization_id")
        assert to_tenant_ref(ref) is ref

        entity_ref = ByEntityReference(TenantA(id=1))
        assert to_tenant_ref(entity_ref) is entity_ref

    def test_model_becomes_entity_reference(self):
        tenant = TenantA(id=1)
        ref = to_tenant_ref(tenant)
        assert isinstance(ref, ByEntityReference)
        assert ref.identifier == "tenant_a_id"
        assert ref.primary_key == 1

    def test_empty_string_rejected(self):
        with pytest.raises(UnknownTenantColumn):
            to_tenant_ref("")

    @pytest.mark.parametrize("bad", [None, 42, 3.5, object(), TenantA])
    def test_unresolvable_refs_rejected(self, bad):
        with pytest.raises(UnknownTenantColumn):
            to_tenant_ref(bad)
