"""Casos de uso da ordem de serviço (criação, edição, envio, cancelamento)."""

import logging
import time
from collections.abc import Iterable

from sqlalchemy.orm import Session as DBSession

from service_os.authorization import require_operation
from service_os.database_models import ServiceOrder
from service_os.exceptions import InvalidTransition, PermissionDenied, StorageError, ValidationError
from service_os.models.quote import OPEN_QUOTE_STATUSES
from service_os.models.role import ADMIN_ROLES, Role
from service_os.models.service_order import ServiceOrderForm, ServiceOrderStatus
from service_os.models.user import User
from service_os.storage import Storage
from service_os.workflow import (
    BIDDING_STATUSES, OrderEvent, QuoteEvent, apply_order_event, next_quote_status,
)

logger = logging.getLogger(__name__)


class HistoryAction:
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SENT_FOR_QUOTES = "SENT_FOR_QUOTES"
    QUOTE_SUBMITTED = "QUOTE_SUBMITTED"
    QUOTE_ACCEPTED = "QUOTE_ACCEPTED"
    QUOTE_REJECTED = "QUOTE_REJECTED"
    QUOTE_CANCELLED = "QUOTE_CANCELLED"
    CANCELLED = "CANCELLED"


def is_in_audience(order, workshop_id: str) -> bool:
    """Lista vazia de oficinas = ordem aberta a todas."""
    return not order.sent_to_workshops or workshop_id in order.sent_to_workshops


class ServiceOrderService:
    def __init__(self, db: DBSession):
        self.db = db
        self.storage = Storage(db)

    # --- Leitura ---

    def list_service_orders(self, user: User) -> list[ServiceOrder]:
        if user.role == Role.CITY_HALL:
            return self.storage.find("service_orders", order_by="-created_at", city_hall_id=user.id)

        if user.role == Role.WORKSHOP:
            quoted_ids = {quote.service_order_id for quote in self.storage.find("quotes", workshop_id=user.id)}
            orders = self.storage.find("service_orders", order_by="-created_at")
            return [
                order for order in orders
                if order.id in quoted_ids
                or (ServiceOrderStatus(order.status) in BIDDING_STATUSES and is_in_audience(order, user.id))
            ]

        return self.storage.find("service_orders", order_by="-created_at")

    def get_service_order(self, order_id: str) -> ServiceOrder:
        return self.storage.get("service_orders", order_id)

    def get_visible_service_order(self, user: User, order_id: str) -> ServiceOrder:
        order = self.get_service_order(order_id)
        if not self.can_view(user, order):
            raise PermissionDenied()
        return order

    def can_view(self, user: User, order: ServiceOrder) -> bool:
        if user.role in ADMIN_ROLES:
            return True
        if user.role == Role.CITY_HALL:
            return order.city_hall_id == user.id
        if ServiceOrderStatus(order.status) in BIDDING_STATUSES and is_in_audience(order, user.id):
            return True
        return bool(self.storage.find("quotes", service_order_id=order.id, workshop_id=user.id))

    def get_history(self, order_id: str) -> list:
        return self.storage.find("service_order_history", order_by="timestamp", service_order_id=order_id)

    # --- Escrita ---

    def create_service_order(self, user: User, form: ServiceOrderForm) -> ServiceOrder:
        require_operation(user, "create_service_order")
        with self.storage.transaction():
            order = self.storage.insert("service_orders", {
                "number": self._generate_number(),
                "city_hall_id": user.id,
                "status": ServiceOrderStatus.DRAFT.value,
                "sent_to_workshops": [],
                **form.to_record(),
            })
            self.record_history(order.id, HistoryAction.CREATED, user, f"Ordem {order.number} criada")
        logger.info("OS %s criada por %s", order.number, user.login)
        return order

    def update_service_order(self, user: User, order_id: str, form: ServiceOrderForm) -> ServiceOrder:
        require_operation(user, "edit_service_order")
        order = self.get_service_order(order_id)
        if order.city_hall_id != user.id:
            raise PermissionDenied()
        if ServiceOrderStatus(order.status) != ServiceOrderStatus.DRAFT:
            raise InvalidTransition(
                "Só é possível editar ordens de serviço em rascunho.",
                current=ServiceOrderStatus(order.status),
            )
        with self.storage.transaction():
            updated = self.storage.update(
                "service_orders", order.id, form.to_record(),
                expected={"status": ServiceOrderStatus.DRAFT.value},
            )
            if updated is None:
                raise InvalidTransition("A ordem de serviço foi alterada por outra operação.")
            self.record_history(order.id, HistoryAction.UPDATED, user, "Dados da ordem atualizados")
        return updated

    def send_for_quotes(self, user: User, order_id: str, workshop_ids: Iterable[str] = ()) -> ServiceOrder:
        require_operation(user, "send_for_quotes")
        order = self.get_service_order(order_id)
        new_status = apply_order_event(order, OrderEvent.SEND_FOR_QUOTES, user)

        workshop_ids = sorted({workshop_id for workshop_id in workshop_ids if workshop_id})
        if workshop_ids:
            known = {
                profile.id for profile in
                self.storage.find("user_profiles", id=workshop_ids, user_type=Role.WORKSHOP.value)
            }
            unknown = [workshop_id for workshop_id in workshop_ids if workshop_id not in known]
            if unknown:
                raise ValidationError(fields={"workshop_ids": "Oficina inválida: " + ", ".join(unknown)})

        with self.storage.transaction():
            updated = self.transition(order, new_status, {"sent_to_workshops": workshop_ids})
            details = (
                f"Enviada para {len(workshop_ids)} oficina(s)" if workshop_ids
                else "Enviada para todas as oficinas"
            )
            self.record_history(order.id, HistoryAction.SENT_FOR_QUOTES, user, details)
        return updated

    def cancel_service_order(self, user: User, order_id: str) -> ServiceOrder:
        require_operation(user, "cancel_service_order")
        order = self.get_service_order(order_id)
        new_status = apply_order_event(order, OrderEvent.CANCEL, user)

        with self.storage.transaction():
            updated = self.transition(order, new_status)
            # Cotações em aberto perdem o objeto
            for quote in self.storage.find("quotes", service_order_id=order.id,
                                           status=[status.value for status in OPEN_QUOTE_STATUSES]):
                self.storage.update("quotes", quote.id, {
                    "status": next_quote_status(quote.status, QuoteEvent.CANCEL).value,
                })
            self.record_history(order.id, HistoryAction.CANCELLED, user, "Ordem de serviço cancelada")
        return updated

    def record_history(self, order_id: str, action: str, user: User, details: str = ""):
        return self.storage.insert("service_order_history", {
            "service_order_id": order_id,
            "action": action,
            "user_id": user.id,
            "user_role": user.role.value,
            "details": details,
        })

    def transition(self, order: ServiceOrder, new_status: ServiceOrderStatus, patch: dict | None = None):
        """Grava o novo status só se ninguém o alterou desde a leitura."""
        current = order.status
        updated = self.storage.update(
            "service_orders", order.id,
            {"status": new_status.value, **(patch or {})},
            expected={"status": current},
        )
        if updated is None:
            raise InvalidTransition(
                "A ordem de serviço foi alterada por outra operação.",
                current=ServiceOrderStatus(current),
            )
        logger.info("OS %s: %s -> %s", updated.number, current, new_status.value)
        return updated

    def _generate_number(self) -> str:
        """'OS' + 6 dígitos, a partir do relógio e sem repetir números existentes."""
        candidate = int(time.time() * 1000) % 1_000_000
        for _ in range(1_000_000):
            number = f"OS{candidate:06d}"
            if not self.storage.find("service_orders", number=number):
                return number
            candidate = (candidate + 1) % 1_000_000
        raise StorageError("Não há números de OS disponíveis.")