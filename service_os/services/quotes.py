"""Casos de uso das cotações: criação, envio, aceite, rejeição e cancelamento."""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session as DBSession

from service_os.authorization import require_operation
from service_os.config import settings
from service_os.database_models import Quote, ServiceOrder
from service_os.exceptions import DuplicateQuote, InvalidTransition, PermissionDenied
from service_os.models.quote import (
    OPEN_QUOTE_STATUSES, SERVICE_LOCATIONS, QuoteForm, QuoteStatus, clamp_percentage, parse_items,
)
from service_os.models.role import Role
from service_os.models.service_order import ServiceOrderStatus
from service_os.models.user import User
from service_os.quote_totals import QuoteTotals, calculate_totals
from service_os.services.service_orders import HistoryAction, ServiceOrderService, is_in_audience
from service_os.storage import Storage
from service_os.workflow import (
    OrderEvent, QuoteEvent, check_order_actor, ensure_can_accept, ensure_open_for_bidding,
    next_order_status, next_quote_status,
)

logger = logging.getLogger(__name__)

_OPEN = [status.value for status in OPEN_QUOTE_STATUSES]


def preview_totals(form) -> QuoteTotals:
    """
    Recalcula os totais a partir do formulário ainda em edição.
    Aqui os percentuais são limitados a [0, 100]; no envio definitivo
    valores fora da faixa são recusados pelo QuoteForm.
    """
    return calculate_totals(
        parse_items(form),
        clamp_percentage(form.get("parts_discount_percentage")),
        clamp_percentage(form.get("labor_discount_percentage")),
    )


class QuoteService:
    def __init__(self, db: DBSession):
        self.db = db
        self.storage = Storage(db)
        self.orders = ServiceOrderService(db)

    # --- Leitura ---

    def get_quote(self, quote_id: str) -> Quote:
        return self.storage.get("quotes", quote_id)

    def list_quotes_for_order(self, user: User, order_id: str) -> list[Quote]:
        order = self.orders.get_visible_service_order(user, order_id)
        if user.role == Role.WORKSHOP:
            # A oficina só enxerga a própria proposta
            return self.storage.find("quotes", order_by="created_at", service_order_id=order.id, workshop_id=user.id)
        return self.storage.find("quotes", order_by="created_at", service_order_id=order.id)

    def list_workshop_quotes(self, user: User) -> list[Quote]:
        if user.role != Role.WORKSHOP:
            return []
        return self.storage.find("quotes", order_by="-created_at", workshop_id=user.id)

    def policy_discounts(self, order: ServiceOrder) -> tuple[float, float]:
        """Descontos padrão definidos no cadastro da prefeitura dona da ordem."""
        profile = self.storage.find_one("user_profiles", order.city_hall_id)
        if profile is None or profile.city_hall is None:
            return 0.0, 0.0
        return (
            clamp_percentage(profile.city_hall.parts_discount_percentage),
            clamp_percentage(profile.city_hall.labor_discount_percentage),
        )

    def prepare_quote_defaults(self, order: ServiceOrder) -> dict:
        parts_discount, labor_discount = self.policy_discounts(order)
        today = date.today()
        return {
            "estimated_delivery_days": 3,
            "estimated_start_date": today.isoformat(),
            "valid_until": (today + timedelta(days=settings.QUOTE_VALIDITY_DAYS)).isoformat(),
            "service_location": SERVICE_LOCATIONS[0],
            "parts_discount_percentage": parts_discount,
            "labor_discount_percentage": labor_discount,
        }

    # --- Escrita ---

    def create_quote(self, user: User, order_id: str, form: QuoteForm, submit: bool = True) -> Quote:
        require_operation(user, "create_quote")
        order = self.orders.get_service_order(order_id)
        ensure_open_for_bidding(order)
        if not is_in_audience(order, user.id):
            raise PermissionDenied()
        if self.storage.find("quotes", service_order_id=order.id, workshop_id=user.id, status=_OPEN):
            raise DuplicateQuote()

        totals = calculate_totals(form.items, form.parts_discount_percentage, form.labor_discount_percentage)
        status = QuoteStatus.SUBMITTED if submit else QuoteStatus.PENDING

        with self.storage.transaction():
            quote = self.storage.insert("quotes", {
                "service_order_id": order.id,
                "workshop_id": user.id,
                "status": status.value,
                "quote_date": date.today(),
                "valid_until": form.valid_until,
                "estimated_delivery_days": form.estimated_delivery_days,
                "estimated_start_date": form.estimated_start_date,
                "service_location": form.service_location,
                "notes": form.notes,
                "items": [item.model_dump(mode="json") for item in form.items],
                "parts_discount_percentage": form.parts_discount_percentage,
                "labor_discount_percentage": form.labor_discount_percentage,
                "submitted_at": datetime.now(timezone.utc) if submit else None,
                **totals.as_dict(),
            })
            if submit:
                self._register_submission(order, user)
        logger.info("Cotação %s (%s) criada para a OS %s por %s", quote.id, status.value, order.number, user.login)
        return quote

    def submit_quote(self, user: User, quote_id: str) -> Quote:
        require_operation(user, "submit_quote")
        quote = self._own_quote(user, quote_id)
        order = self.orders.get_service_order(quote.service_order_id)
        ensure_open_for_bidding(order)
        new_status = next_quote_status(quote.status, QuoteEvent.SUBMIT)

        with self.storage.transaction():
            updated = self._transition(quote, new_status, {"submitted_at": datetime.now(timezone.utc)})
            self._register_submission(order, user)
        return updated

    def cancel_quote(self, user: User, quote_id: str) -> Quote:
        require_operation(user, "cancel_quote")
        quote = self._own_quote(user, quote_id)
        new_status = next_quote_status(quote.status, QuoteEvent.CANCEL)
        with self.storage.transaction():
            updated = self._transition(quote, new_status)
            self.orders.record_history(quote.service_order_id, HistoryAction.QUOTE_CANCELLED, user,
                                       "Cotação cancelada pela oficina")
        return updated

    def reject_quote(self, user: User, quote_id: str) -> Quote:
        require_operation(user, "reject_quote")
        quote = self.get_quote(quote_id)
        order = self.orders.get_service_order(quote.service_order_id)
        if order.city_hall_id != user.id:
            raise PermissionDenied()
        new_status = next_quote_status(quote.status, QuoteEvent.REJECT)
        with self.storage.transaction():
            updated = self._transition(quote, new_status)
            self.orders.record_history(order.id, HistoryAction.QUOTE_REJECTED, user, "Orçamento rejeitado")
        return updated

    def accept_quote(self, user: User, quote_id: str) -> Quote:
        """
        Aceita a cotação, rejeita as demais cotações abertas da mesma ordem e
        leva a ordem para ACCEPTED, tudo na mesma transação.
        """
        require_operation(user, "accept_quote")
        quote = self.get_quote(quote_id)
        order = self.orders.get_service_order(quote.service_order_id)
        check_order_actor(order, OrderEvent.ACCEPT_QUOTE, user)
        ensure_can_accept(order, quote)

        with self.storage.transaction():
            self.orders.transition(order, next_order_status(order.status, OrderEvent.ACCEPT_QUOTE))
            accepted = self._transition(quote, QuoteStatus.ACCEPTED)
            siblings = [
                sibling for sibling in
                self.storage.find("quotes", service_order_id=order.id, status=_OPEN)
                if sibling.id != quote.id
            ]
            for sibling in siblings:
                # Enviadas são rejeitadas; rascunhos apenas cancelados
                event = QuoteEvent.REJECT if sibling.status == QuoteStatus.SUBMITTED.value else QuoteEvent.CANCEL
                self._transition(sibling, next_quote_status(sibling.status, event))
            self.orders.record_history(
                order.id, HistoryAction.QUOTE_ACCEPTED, user,
                f"Orçamento aceito para execução ({len(siblings)} outra(s) cotação(ões) encerrada(s))",
            )
        logger.info("Cotação %s aceita para a OS %s", quote.id, order.number)
        return accepted

    # --- Auxiliares ---

    def _own_quote(self, user: User, quote_id: str) -> Quote:
        quote = self.get_quote(quote_id)
        if quote.workshop_id != user.id:
            raise PermissionDenied()
        return quote

    def _register_submission(self, order: ServiceOrder, user: User) -> None:
        # A cotação enviada leva a ordem de SENT_FOR_QUOTES para QUOTED
        check_order_actor(order, OrderEvent.RECEIVE_QUOTE, user)
        new_status = next_order_status(order.status, OrderEvent.RECEIVE_QUOTE)
        updated = self.storage.update(
            "service_orders", order.id, {"status": new_status.value},
            expected={"status": ServiceOrderStatus.SENT_FOR_QUOTES.value},
        )
        if updated is None:
            raise InvalidTransition(
                "A ordem de serviço já recebeu outra cotação.",
                current=ServiceOrderStatus.QUOTED, event=OrderEvent.RECEIVE_QUOTE,
            )
        self.orders.record_history(order.id, HistoryAction.QUOTE_SUBMITTED, user, "Cotação enviada")

    def _transition(self, quote: Quote, new_status: QuoteStatus, patch: dict | None = None) -> Quote:
        current = quote.status
        updated = self.storage.update(
            "quotes", quote.id, {"status": new_status.value, **(patch or {})},
            expected={"status": current},
        )
        if updated is None:
            raise InvalidTransition(
                "A cotação foi alterada por outra operação.", current=QuoteStatus(current),
            )
        logger.info("Cotação %s: %s -> %s", quote.id, current, new_status.value)
        return updated
