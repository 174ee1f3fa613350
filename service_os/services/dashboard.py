"""Indicadores do dashboard. Os widgets exibidos vêm do RolePolicy do papel."""

from sqlalchemy.orm import Session as DBSession

from service_os.authorization import role_policy
from service_os.models.quote import QuoteStatus
from service_os.models.role import Role
from service_os.models.service_order import ServiceOrderStatus
from service_os.models.user import User
from service_os.services.service_orders import ServiceOrderService
from service_os.storage import Storage
from service_os.workflow import BIDDING_STATUSES

RECENT_LIMIT = 5


class DashboardService:
    def __init__(self, db: DBSession):
        self.storage = Storage(db)
        self.orders = ServiceOrderService(db)

    def dashboard_stats(self, user: User) -> dict:
        widgets = role_policy(user.role).dashboard_widgets
        visible_orders = self.orders.list_service_orders(user)
        stats = {}
        for widget in widgets:
            stats[widget] = getattr(self, f"_{widget}")(user, visible_orders)
        return stats

    # Cada widget recebe o usuário e as ordens que ele pode ver

    def _active_service_orders(self, user, orders):
        return sum(1 for order in orders if order.status != ServiceOrderStatus.CANCELLED.value)

    def _pending_quotes(self, user, orders):
        filters = {"status": QuoteStatus.SUBMITTED.value}
        if user.role == Role.CITY_HALL:
            filters["service_order_id"] = [order.id for order in orders]
        return len(self.storage.find("quotes", **filters))

    def _recent_service_orders(self, user, orders):
        return orders[:RECENT_LIMIT]

    def _available_orders(self, user, orders):
        return sum(1 for order in orders if ServiceOrderStatus(order.status) in BIDDING_STATUSES)

    def _submitted_quotes(self, user, orders):
        return len(self.storage.find("quotes", workshop_id=user.id))

    def _accepted_quotes(self, user, orders):
        return len(self.storage.find("quotes", workshop_id=user.id, status=QuoteStatus.ACCEPTED.value))

    def _recent_orders(self, user, orders):
        return [order for order in orders if ServiceOrderStatus(order.status) in BIDDING_STATUSES][:RECENT_LIMIT]

    def _total_service_orders(self, user, orders):
        return len(orders)

    def _accepted_orders(self, user, orders):
        return sum(1 for order in orders if order.status == ServiceOrderStatus.ACCEPTED.value)

    def _recent_activity(self, user, orders):
        return orders[:RECENT_LIMIT]

    def _city_halls_count(self, user, orders):
        return len(self.storage.find("user_profiles", user_type=Role.CITY_HALL.value))

    def _workshops_count(self, user, orders):
        return len(self.storage.find("user_profiles", user_type=Role.WORKSHOP.value))

    def _users_count(self, user, orders):
        return len(self.storage.find("user_profiles"))


WIDGET_LABELS = {
    "active_service_orders": "Ordens de serviço ativas",
    "pending_quotes": "Cotações aguardando análise",
    "recent_service_orders": "Ordens recentes",
    "available_orders": "Ordens disponíveis para cotação",
    "submitted_quotes": "Cotações enviadas",
    "accepted_quotes": "Cotações aceitas",
    "recent_orders": "Ordens abertas recentes",
    "total_service_orders": "Total de ordens de serviço",
    "accepted_orders": "Ordens aceitas",
    "recent_activity": "Atividade recente",
    "city_halls_count": "Prefeituras",
    "workshops_count": "Oficinas",
    "users_count": "Usuários",
}
