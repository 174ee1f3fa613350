"""
Máquina de estados da ordem de serviço e das cotações.

Ordem de serviço:
    DRAFT -> SENT_FOR_QUOTES -> QUOTED -> ACCEPTED
    DRAFT / SENT_FOR_QUOTES / QUOTED -> CANCELLED

Cotação:
    PENDING -> SUBMITTED -> ACCEPTED | REJECTED
    PENDING / SUBMITTED -> CANCELLED

As funções daqui só decidem; nenhuma grava nada. Uma transição ilegal
levanta InvalidTransition antes de qualquer escrita, e um ator sem direito
levanta PermissionDenied.
"""

import logging
from enum import Enum

from service_os.exceptions import InvalidTransition, PermissionDenied
from service_os.models.quote import QuoteStatus
from service_os.models.role import Role
from service_os.models.service_order import ServiceOrderStatus

logger = logging.getLogger(__name__)


class OrderEvent(str, Enum):
    SEND_FOR_QUOTES = "SEND_FOR_QUOTES"
    RECEIVE_QUOTE = "RECEIVE_QUOTE"
    ACCEPT_QUOTE = "ACCEPT_QUOTE"
    CANCEL = "CANCEL"


class QuoteEvent(str, Enum):
    SUBMIT = "SUBMIT"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


S = ServiceOrderStatus
Q = QuoteStatus

ORDER_TRANSITIONS = {
    (S.DRAFT, OrderEvent.SEND_FOR_QUOTES): S.SENT_FOR_QUOTES,
    (S.SENT_FOR_QUOTES, OrderEvent.RECEIVE_QUOTE): S.QUOTED,
    (S.QUOTED, OrderEvent.ACCEPT_QUOTE): S.ACCEPTED,
    (S.DRAFT, OrderEvent.CANCEL): S.CANCELLED,
    (S.SENT_FOR_QUOTES, OrderEvent.CANCEL): S.CANCELLED,
    (S.QUOTED, OrderEvent.CANCEL): S.CANCELLED,
}

# Papéis que podem disparar cada evento
ORDER_EVENT_ROLES = {
    OrderEvent.SEND_FOR_QUOTES: frozenset({Role.CITY_HALL}),
    OrderEvent.RECEIVE_QUOTE: frozenset({Role.WORKSHOP}),
    OrderEvent.ACCEPT_QUOTE: frozenset({Role.CITY_HALL}),
    OrderEvent.CANCEL: frozenset({Role.CITY_HALL, Role.GENERAL_ADMIN}),
}

QUOTE_TRANSITIONS = {
    (Q.PENDING, QuoteEvent.SUBMIT): Q.SUBMITTED,
    (Q.SUBMITTED, QuoteEvent.ACCEPT): Q.ACCEPTED,
    (Q.SUBMITTED, QuoteEvent.REJECT): Q.REJECTED,
    (Q.PENDING, QuoteEvent.CANCEL): Q.CANCELLED,
    (Q.SUBMITTED, QuoteEvent.CANCEL): Q.CANCELLED,
}

TERMINAL_ORDER_STATUSES = frozenset({S.ACCEPTED, S.CANCELLED})
TERMINAL_QUOTE_STATUSES = frozenset({Q.ACCEPTED, Q.REJECTED, Q.CANCELLED})

# Só a ordem enviada para cotação aceita cotações; a cotação enviada a leva a QUOTED
BIDDING_STATUSES = frozenset({S.SENT_FOR_QUOTES})


def is_terminal(status) -> bool:
    if isinstance(status, QuoteStatus):
        return status in TERMINAL_QUOTE_STATUSES
    return ServiceOrderStatus(status) in TERMINAL_ORDER_STATUSES


def next_order_status(current, event: OrderEvent) -> ServiceOrderStatus:
    current = ServiceOrderStatus(current)
    try:
        return ORDER_TRANSITIONS[(current, OrderEvent(event))]
    except KeyError:
        logger.info("Transição recusada: OS %s + %s", current.value, event)
        raise InvalidTransition(
            f"Não é possível aplicar '{OrderEvent(event).value}' a uma ordem com status {current.value}.",
            current=current,
            event=event,
        ) from None


def next_quote_status(current, event: QuoteEvent) -> QuoteStatus:
    current = QuoteStatus(current)
    try:
        return QUOTE_TRANSITIONS[(current, QuoteEvent(event))]
    except KeyError:
        logger.info("Transição recusada: cotação %s + %s", current.value, event)
        raise InvalidTransition(
            f"Não é possível aplicar '{QuoteEvent(event).value}' a uma cotação com status {current.value}.",
            current=current,
            event=event,
        ) from None


def can_transition(current, event: OrderEvent) -> bool:
    return (ServiceOrderStatus(current), OrderEvent(event)) in ORDER_TRANSITIONS


def check_order_actor(order, event: OrderEvent, actor) -> None:
    """Papel permitido e, para a prefeitura, ser a dona da ordem."""
    if actor is None or actor.role not in ORDER_EVENT_ROLES[OrderEvent(event)]:
        raise PermissionDenied()
    if actor.role == Role.CITY_HALL and order.city_hall_id != actor.id:
        raise PermissionDenied()


def apply_order_event(order, event: OrderEvent, actor) -> ServiceOrderStatus:
    """Valida ator e transição e devolve o novo status (sem gravar)."""
    check_order_actor(order, event, actor)
    return next_order_status(order.status, event)


def ensure_open_for_bidding(order) -> None:
    """Só se cota uma ordem com status SENT_FOR_QUOTES."""
    status = ServiceOrderStatus(order.status)
    if status not in BIDDING_STATUSES:
        logger.info("Cotação recusada: OS %s está %s", order.id, status.value)
        raise InvalidTransition(
            f"A ordem de serviço não está aberta para cotações (status {status.value}).",
            current=status,
            event=OrderEvent.RECEIVE_QUOTE,
        )


def ensure_can_accept(order, quote) -> None:
    if quote.service_order_id != order.id:
        raise InvalidTransition("A cotação não pertence a esta ordem de serviço.")
    next_order_status(order.status, OrderEvent.ACCEPT_QUOTE)
    next_quote_status(quote.status, QuoteEvent.ACCEPT)
