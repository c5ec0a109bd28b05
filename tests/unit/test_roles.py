import pytest

from medmarket.models import AppRole
from medmarket.services.role_service import RoleResolution, effective_role

pytestmark = pytest.mark.unit


def test_effective_role_priority():
    assert effective_role(["customer", "pharmacy"]) == AppRole.PHARMACY
    assert effective_role(["customer", "delivery_agent"]) == AppRole.DELIVERY_AGENT
    assert effective_role(["pharmacy", "admin", "customer"]) == AppRole.ADMIN


def test_effective_role_defaults_to_customer():
    assert effective_role([]) == AppRole.CUSTOMER


def test_unknown_resolution_is_distinct_from_customer():
    unknown = RoleResolution(status="unknown")
    customer = RoleResolution(status="resolved", role=AppRole.CUSTOMER, roles=frozenset({"customer"}))

    assert unknown.is_known is False
    assert unknown.display_role == "unknown"
    assert customer.display_role == "customer"
