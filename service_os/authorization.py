"""
Controle de acesso por papel.

Toda a decisão "quem pode ver / fazer o quê" fica nas tabelas deste módulo:
ROUTE_ROLES (rotas navegáveis), OPERATION_ROLES (mutações) e ROLE_POLICIES
(menu, widgets do dashboard e campos de perfil por papel). As rotas e os
serviços consultam estas tabelas em vez de repetir if/else por papel.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from service_os.exceptions import PermissionDenied
from service_os.models.role import ADMIN_ROLES, Role

LOGIN_ROUTE = "/login"
DEFAULT_ROUTE = "/dashboard"

# Ausência de lista (None) = qualquer papel autenticado
ROUTE_ROLES: dict[str, Optional[frozenset]] = {
    "/dashboard": None,
    "/service-orders": None,
    "/service-orders/new": frozenset({Role.CITY_HALL}),
    "/service-orders/:id": None,
    "/service-orders/:id/edit": frozenset({Role.CITY_HALL}),
    "/service-orders/:id/quotes": None,
    "/service-orders/:id/quote/new": frozenset({Role.WORKSHOP}),
    "/my-quotes": None,
    "/admin/users": frozenset({Role.GENERAL_ADMIN}),
    "/admin/users/*": frozenset({Role.GENERAL_ADMIN}),
    "/reports/*": ADMIN_ROLES,
}

OPERATION_ROLES: dict[str, frozenset] = {
    "create_service_order": frozenset({Role.CITY_HALL}),
    "edit_service_order": frozenset({Role.CITY_HALL}),
    "send_for_quotes": frozenset({Role.CITY_HALL}),
    "cancel_service_order": frozenset({Role.CITY_HALL, Role.GENERAL_ADMIN}),
    "create_quote": frozenset({Role.WORKSHOP}),
    "submit_quote": frozenset({Role.WORKSHOP}),
    "cancel_quote": frozenset({Role.WORKSHOP}),
    "accept_quote": frozenset({Role.CITY_HALL}),
    "reject_quote": frozenset({Role.CITY_HALL}),
    "manage_users": frozenset({Role.GENERAL_ADMIN}),
    "export_reports": ADMIN_ROLES,
}


def _pattern(route: str) -> re.Pattern:
    # ":nome" casa um segmento; "/*" no final casa qualquer sub-caminho
    if route.endswith("/*"):
        return re.compile("^" + re.escape(route[:-2]) + "/.+$")
    return re.compile("^" + re.sub(r":\w+", r"[^/]+", route.rstrip("/")) + "/?$")


# Rotas fixas antes das parametrizadas ("/service-orders/new" vs "/service-orders/:id")
_ROUTE_PATTERNS = sorted(
    ((route, _pattern(route)) for route in ROUTE_ROLES),
    key=lambda pair: (":" in pair[0] or "*" in pair[0], -len(pair[0])),
)


def match_route(path: str) -> Optional[str]:
    """Devolve o padrão de rota correspondente ao caminho (ou None)."""
    if path in ROUTE_ROLES:
        return path
    for route, pattern in _ROUTE_PATTERNS:
        if pattern.match(path):
            return route
    return None


def can_access(route: str, role: Role) -> bool:
    pattern = match_route(route)
    allowed = ROUTE_ROLES.get(pattern) if pattern else None
    return allowed is None or role in allowed


def can_perform(operation: str, role: Role) -> bool:
    return role in OPERATION_ROLES[operation]


def require_operation(user, operation: str) -> None:
    if user is None or not can_perform(operation, user.role):
        raise PermissionDenied()


def is_authenticated(session, user) -> bool:
    """Só há autenticação com sessão ativa E usuário resolvido."""
    return session is not None and user is not None


def redirect_target(route: str, session, user) -> Optional[str]:
    """
    Ponto único de decisão das rotas protegidas: None libera o acesso,
    senão devolve para onde redirecionar (login ou página inicial).
    """
    if not is_authenticated(session, user):
        return LOGIN_ROUTE
    if not can_access(route, user.role):
        return DEFAULT_ROUTE
    return None


@dataclass(frozen=True)
class NavItem:
    title: str
    href: str


@dataclass(frozen=True)
class RolePolicy:
    role: Role
    navigation: tuple = ()
    dashboard_widgets: tuple = ()
    profile_fields: tuple = field(default=())


_ADDRESS_FIELDS = (
    "trade_name", "corporate_name", "cnpj", "state_registration",
    "city", "state", "zip_code", "address",
)

ROLE_POLICIES = {
    Role.CITY_HALL: RolePolicy(
        role=Role.CITY_HALL,
        navigation=(
            NavItem("Dashboard", "/dashboard"),
            NavItem("Ordens de Serviço", "/service-orders"),
            NavItem("Nova OS", "/service-orders/new"),
        ),
        dashboard_widgets=("active_service_orders", "pending_quotes", "recent_service_orders"),
        profile_fields=_ADDRESS_FIELDS + (
            "parts_discount_percentage", "labor_discount_percentage",
            "ir_labor", "ir_parts", "pis_labor", "pis_parts",
            "cofins_labor", "cofins_parts", "csll_labor", "csll_parts",
        ),
    ),
    Role.WORKSHOP: RolePolicy(
        role=Role.WORKSHOP,
        navigation=(
            NavItem("Dashboard", "/dashboard"),
            NavItem("Ordens de Serviço", "/service-orders"),
            NavItem("Minhas Cotações", "/my-quotes"),
        ),
        dashboard_widgets=("available_orders", "submitted_quotes", "accepted_quotes", "recent_orders"),
        profile_fields=_ADDRESS_FIELDS + (
            "bank_name", "bank_branch", "bank_account", "accredited_city_halls",
        ),
    ),
    Role.QUERY_ADMIN: RolePolicy(
        role=Role.QUERY_ADMIN,
        navigation=(
            NavItem("Dashboard", "/dashboard"),
            NavItem("Ordens de Serviço", "/service-orders"),
            NavItem("Relatórios", "/reports/service-orders.xlsx"),
        ),
        dashboard_widgets=("total_service_orders", "accepted_orders", "pending_quotes", "recent_activity"),
    ),
    Role.GENERAL_ADMIN: RolePolicy(
        role=Role.GENERAL_ADMIN,
        navigation=(
            NavItem("Dashboard", "/dashboard"),
            NavItem("Ordens de Serviço", "/service-orders"),
            NavItem("Usuários", "/admin/users"),
            NavItem("Relatórios", "/reports/service-orders.xlsx"),
        ),
        dashboard_widgets=(
            "total_service_orders", "accepted_orders",
            "city_halls_count", "workshops_count", "users_count", "recent_activity",
        ),
    ),
}


def role_policy(role: Role) -> RolePolicy:
    return ROLE_POLICIES[Role(role)]
