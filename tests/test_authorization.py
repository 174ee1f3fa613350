"""
Testes de acesso a rotas e operações por papel.
"""

from types import SimpleNamespace

import pytest

from service_os.authorization import (
    DEFAULT_ROUTE,
    LOGIN_ROUTE,
    OPERATION_ROLES,
    ROLE_POLICIES,
    ROUTE_ROLES,
    can_access,
    can_perform,
    match_route,
    redirect_target,
    require_operation,
    role_policy,
)
from service_os.exceptions import PermissionDenied
from service_os.models.role import Role


def user(role):
    return SimpleNamespace(id="u1", role=role)


class TestMatchRoute:
    @pytest.mark.parametrize("path,expected", [
        ("/service-orders/new", "/service-orders/new"),
        ("/service-orders/abc-123", "/service-orders/:id"),
        ("/service-orders/abc-123/edit", "/service-orders/:id/edit"),
        ("/service-orders/abc-123/quote/new", "/service-orders/:id/quote/new"),
        ("/service-orders/", "/service-orders"),
        ("/admin/users/", "/admin/users"),
        ("/admin/users/xyz/edit", "/admin/users/*"),
        ("/reports/service-orders.xlsx", "/reports/*"),
        ("/desconhecida", None),
    ])
    def test_match(self, path, expected):
        assert match_route(path) == expected


class TestRouteAccess:
    def test_only_city_hall_creates_orders(self):
        assert can_access("/service-orders/new", Role.CITY_HALL)
        for role in (Role.WORKSHOP, Role.QUERY_ADMIN, Role.GENERAL_ADMIN):
            assert not can_access("/service-orders/new", role)

    def test_only_workshop_opens_quote_form(self):
        assert can_access("/service-orders/1/quote/new", Role.WORKSHOP)
        assert not can_access("/service-orders/1/quote/new", Role.CITY_HALL)

    def test_user_admin_is_general_admin_only(self):
        assert can_access("/admin/users/1/edit", Role.GENERAL_ADMIN)
        assert not can_access("/admin/users/1/edit", Role.QUERY_ADMIN)

    def test_open_routes_allow_every_role(self):
        for role in Role:
            assert can_access("/dashboard", role)
            assert can_access("/service-orders/abc", role)

    def test_redirects(self):
        session = object()
        assert redirect_target("/dashboard", None, None) == LOGIN_ROUTE
        # Sessão sem usuário resolvido não é autenticação
        assert redirect_target("/dashboard", session, None) == LOGIN_ROUTE
        assert redirect_target("/service-orders/new", session, user(Role.WORKSHOP)) == DEFAULT_ROUTE
        assert redirect_target("/service-orders/new", session, user(Role.CITY_HALL)) is None


class TestOperations:
    def test_workshop_cannot_create_order(self):
        with pytest.raises(PermissionDenied):
            require_operation(user(Role.WORKSHOP), "create_service_order")

    def test_city_hall_cannot_create_quote(self):
        with pytest.raises(PermissionDenied):
            require_operation(user(Role.CITY_HALL), "create_quote")

    def test_anonymous_is_denied(self):
        with pytest.raises(PermissionDenied):
            require_operation(None, "export_reports")

    def test_reports_are_for_admins(self):
        assert can_perform("export_reports", Role.QUERY_ADMIN)
        assert can_perform("export_reports", Role.GENERAL_ADMIN)
        assert not can_perform("export_reports", Role.CITY_HALL)


class TestRolePolicies:
    def test_every_role_has_a_policy(self):
        assert set(ROLE_POLICIES) == set(Role)

    def test_navigation_only_points_to_accessible_routes(self):
        for role, policy in ROLE_POLICIES.items():
            for item in policy.navigation:
                assert can_access(item.href, role), (role, item.href)

    def test_policy_lookup_accepts_strings(self):
        assert role_policy("WORKSHOP") is ROLE_POLICIES[Role.WORKSHOP]

    def test_profile_fields(self):
        assert "parts_discount_percentage" in role_policy(Role.CITY_HALL).profile_fields
        assert "bank_account" in role_policy(Role.WORKSHOP).profile_fields
        assert role_policy(Role.QUERY_ADMIN).profile_fields == ()

    def test_tables_only_reference_known_roles(self):
        for roles in list(ROUTE_ROLES.values()) + list(OPERATION_ROLES.values()):
            assert roles is None or roles <= set(Role)
