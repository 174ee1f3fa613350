from enum import Enum


class Role(str, Enum):
    """Papel do usuário. Definido na criação da conta e nunca alterado."""
    CITY_HALL = "CITY_HALL"
    WORKSHOP = "WORKSHOP"
    QUERY_ADMIN = "QUERY_ADMIN"
    GENERAL_ADMIN = "GENERAL_ADMIN"


ROLE_LABELS = {
    Role.CITY_HALL: "Prefeitura",
    Role.WORKSHOP: "Oficina",
    Role.QUERY_ADMIN: "Administrador de Consulta",
    Role.GENERAL_ADMIN: "Administrador Geral",
}

ADMIN_ROLES = frozenset({Role.QUERY_ADMIN, Role.GENERAL_ADMIN})
