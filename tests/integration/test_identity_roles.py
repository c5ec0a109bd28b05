from datetime import date
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from medmarket.models import AppRole, Profile, UserRole
from medmarket.services.exceptions import AuthorizationError, DatabaseError, NotFoundError, ValidationError
from medmarket.services.identity_service import get_profile, on_principal_created, update_profile
from medmarket.services.policies import load_actor
from medmarket.services.role_service import RoleService

pytestmark = pytest.mark.integration


def test_principal_created_hook_is_idempotent(test_session):
    principal_id = uuid.uuid4()

    on_principal_created(test_session, principal_id, email="ada@example.com", metadata={"full_name": "Ada Obi"})
    on_principal_created(test_session, principal_id, email="ada@example.com", metadata={"full_name": "Ada Obi"})

    profiles = test_session.scalars(select(Profile).where(Profile.user_id == principal_id)).all()
    assert len(profiles) == 1
    assert profiles[0].full_name == "Ada Obi"
    assert RoleService(test_session).list_roles(principal_id) == ["customer"]


def test_role_pairs_are_unique(test_session, factory):
    actor = factory.customer()

    with pytest.raises(IntegrityError):
        with test_session.begin_nested():
            test_session.add(UserRole(user_id=actor.principal_id, role="customer"))
            test_session.flush()

    assert RoleService(test_session).ensure_role(actor.principal_id, AppRole.CUSTOMER) is False


def test_self_grant_rules(test_session, factory):
    actor = factory.customer()
    other = factory.customer()
    service = RoleService(test_session)

    assert service.grant_role(actor, actor.principal_id, "pharmacy") is True
    assert service.grant_role(actor, actor.principal_id, "pharmacy") is False

    with pytest.raises(AuthorizationError):
        service.grant_role(actor, actor.principal_id, "admin")
    with pytest.raises(AuthorizationError):
        service.grant_role(actor, other.principal_id, "customer")
    with pytest.raises(ValidationError):
        service.grant_role(actor, actor.principal_id, "superuser")


def test_admin_grants_and_revokes(test_session, factory):
    admin = factory.admin()
    target = factory.customer()
    service = RoleService(test_session)

    assert service.grant_role(admin, target.principal_id, "delivery_agent") is True
    assert load_actor(test_session, target.principal_id).has_role(AppRole.DELIVERY_AGENT)

    assert service.revoke_role(admin, target.principal_id, "delivery_agent") is True
    assert service.revoke_role(admin, target.principal_id, "delivery_agent") is False

    with pytest.raises(NotFoundError):
        service.grant_role(admin, uuid.uuid4(), "customer")


def test_effective_role_self_heals_from_signup_metadata(test_session, factory):
    actor = factory.actor(metadata={"role": "delivery_agent"})
    service = RoleService(test_session)

    resolution = service.resolve_effective_role(actor.principal_id)

    assert resolution.is_known
    assert resolution.role == AppRole.DELIVERY_AGENT
    assert "delivery_agent" in service.list_roles(actor.principal_id)


def test_admin_is_never_self_healed(test_session, factory):
    actor = factory.actor(metadata={"role": "admin"})

    resolution = RoleService(test_session).resolve_effective_role(actor.principal_id)

    assert resolution.role == AppRole.CUSTOMER
    assert test_session.scalar(
        select(func.count(UserRole.id)).where(UserRole.user_id == actor.principal_id).where(UserRole.role == "admin")
    ) == 0


def test_role_lookup_failure_is_unknown_not_customer(test_session, factory, monkeypatch):
    actor = factory.customer()
    service = RoleService(test_session)

    def _fail(principal_id):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(service, "list_roles", _fail)
    resolution = service.resolve_effective_role(actor.principal_id)

    assert resolution.is_known is False
    assert resolution.display_role == "unknown"


def test_authorization_fails_closed_on_lookup_error(test_session, factory, monkeypatch):
    actor = factory.customer()

    def _fail(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(test_session, "scalars", _fail)
    with pytest.raises(DatabaseError):
        load_actor(test_session, actor.principal_id)


def test_profile_access(test_session, factory):
    actor = factory.customer()
    other = factory.customer()
    admin = factory.admin()

    update_profile(test_session, actor, {"phone": "0803", "date_of_birth": "1990-05-01", "unknown": "x"})
    profile = get_profile(test_session, actor)
    assert profile.phone == "0803"
    assert profile.date_of_birth == date(1990, 5, 1)

    with pytest.raises(AuthorizationError):
        get_profile(test_session, other, user_id=actor.principal_id)
    assert get_profile(test_session, admin, user_id=actor.principal_id).phone == "0803"


def test_admin_user_directory(test_session, factory):
    admin = factory.admin()
    owner, _ = factory.pharmacy()

    users = {u["id"]: u for u in RoleService(test_session).list_users_with_roles(admin)}

    assert users[admin.principal_id]["effective_role"] == "admin"
    assert users[owner.principal_id]["roles"] == ["customer", "pharmacy"]
    with pytest.raises(AuthorizationError):
        RoleService(test_session).list_users_with_roles(owner)
