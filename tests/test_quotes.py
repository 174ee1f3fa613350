"""
Testes de envio e aceite de cotações.
"""

import pytest

from service_os.exceptions import DuplicateQuote, InvalidTransition, PermissionDenied
from service_os.models.quote import QuoteStatus
from service_os.models.service_order import ServiceOrderStatus
from service_os.services.quotes import QuoteService
from service_os.services.service_orders import HistoryAction


@pytest.fixture
def quotes(db):
    return QuoteService(db)


@pytest.fixture
def order(quotes, city_hall, order_form):
    order = quotes.orders.create_service_order(city_hall, order_form)
    return quotes.orders.send_for_quotes(city_hall, order.id)


def status_of(quotes, quote):
    return quotes.get_quote(quote.id).status


class TestCreateQuote:
    def test_first_submission_marks_order_quoted(self, quotes, order, workshop, quote_form):
        quote = quotes.create_quote(workshop, order.id, quote_form)

        assert quote.status == QuoteStatus.SUBMITTED.value
        assert quote.total == 370
        assert quote.parts_discount_amount == 20
        assert quote.submitted_at is not None
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.QUOTED.value

    def test_quoted_order_rejects_new_quotes(self, quotes, order, workshop, other_workshop, quote_form):
        quotes.create_quote(workshop, order.id, quote_form)

        with pytest.raises(InvalidTransition):
            quotes.create_quote(other_workshop, order.id, quote_form)
        with pytest.raises(InvalidTransition):
            quotes.create_quote(other_workshop, order.id, quote_form, submit=False)
        assert quotes.list_workshop_quotes(other_workshop) == []

    def test_draft_cannot_be_submitted_once_order_is_quoted(self, quotes, order, workshop, other_workshop,
                                                            quote_form):
        draft = quotes.create_quote(other_workshop, order.id, quote_form, submit=False)
        quotes.create_quote(workshop, order.id, quote_form)

        with pytest.raises(InvalidTransition):
            quotes.submit_quote(other_workshop, draft.id)
        assert status_of(quotes, draft) == QuoteStatus.PENDING.value

    def test_draft_does_not_move_order(self, quotes, order, workshop, quote_form):
        quote = quotes.create_quote(workshop, order.id, quote_form, submit=False)
        assert quote.status == QuoteStatus.PENDING.value
        assert quote.submitted_at is None
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.SENT_FOR_QUOTES.value

        submitted = quotes.submit_quote(workshop, quote.id)
        assert submitted.status == QuoteStatus.SUBMITTED.value
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.QUOTED.value

    def test_duplicate_quote_is_rejected(self, quotes, order, workshop, quote_form):
        quotes.create_quote(workshop, order.id, quote_form)
        with pytest.raises(DuplicateQuote):
            quotes.create_quote(workshop, order.id, quote_form)

    def test_new_quote_after_cancelling(self, quotes, order, workshop, quote_form):
        first = quotes.create_quote(workshop, order.id, quote_form)
        quotes.cancel_quote(workshop, first.id)
        second = quotes.create_quote(workshop, order.id, quote_form)
        assert second.id != first.id

    def test_draft_order_cannot_receive_quote(self, quotes, city_hall, workshop, order_form, quote_form):
        draft = quotes.orders.create_service_order(city_hall, order_form)
        with pytest.raises(InvalidTransition):
            quotes.create_quote(workshop, draft.id, quote_form)
        assert quotes.list_workshop_quotes(workshop) == []

    def test_city_hall_cannot_quote(self, quotes, order, city_hall, quote_form):
        with pytest.raises(PermissionDenied):
            quotes.create_quote(city_hall, order.id, quote_form)

    def test_workshop_outside_audience(self, quotes, city_hall, workshop, other_workshop, order_form, quote_form):
        targeted = quotes.orders.create_service_order(city_hall, order_form)
        quotes.orders.send_for_quotes(city_hall, targeted.id, [workshop.id])
        with pytest.raises(PermissionDenied):
            quotes.create_quote(other_workshop, targeted.id, quote_form)

    def test_defaults_come_from_city_hall(self, quotes, order):
        defaults = quotes.prepare_quote_defaults(order)
        assert defaults["parts_discount_percentage"] == 10
        assert defaults["labor_discount_percentage"] == 5
        assert defaults["service_location"] == "Na oficina"

    def test_workshop_may_override_defaults(self, quotes, order, workshop, quote_form):
        quote_form.parts_discount_percentage = 0
        quote = quotes.create_quote(workshop, order.id, quote_form)
        assert quote.parts_discount_percentage == 0
        assert quote.total == 390


class TestAcceptQuote:
    def test_accept_closes_the_other_quotes(self, quotes, order, city_hall, workshop, other_workshop,
                                            make_user, quote_form):
        third_workshop = make_user("WORKSHOP", "oficina3")
        first_draft = quotes.create_quote(other_workshop, order.id, quote_form, submit=False)
        second_draft = quotes.create_quote(third_workshop, order.id, quote_form, submit=False)
        winner = quotes.create_quote(workshop, order.id, quote_form)

        accepted = quotes.accept_quote(city_hall, winner.id)

        assert accepted.status == QuoteStatus.ACCEPTED.value
        assert status_of(quotes, first_draft) == QuoteStatus.CANCELLED.value
        assert status_of(quotes, second_draft) == QuoteStatus.CANCELLED.value
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.ACCEPTED.value
        actions = [entry.action for entry in quotes.orders.get_history(order.id)]
        assert HistoryAction.QUOTE_ACCEPTED in actions

    def test_accepted_order_is_terminal(self, quotes, order, city_hall, workshop, other_workshop, quote_form):
        winner = quotes.create_quote(workshop, order.id, quote_form)
        quotes.accept_quote(city_hall, winner.id)

        with pytest.raises(InvalidTransition):
            quotes.create_quote(other_workshop, order.id, quote_form)
        with pytest.raises(InvalidTransition):
            quotes.orders.cancel_service_order(city_hall, order.id)
        with pytest.raises(InvalidTransition):
            quotes.accept_quote(city_hall, winner.id)

    def test_only_owner_city_hall_accepts(self, quotes, order, other_city_hall, workshop, quote_form):
        quote = quotes.create_quote(workshop, order.id, quote_form)
        with pytest.raises(PermissionDenied):
            quotes.accept_quote(other_city_hall, quote.id)
        assert status_of(quotes, quote) == QuoteStatus.SUBMITTED.value

    def test_pending_quote_cannot_be_accepted(self, quotes, order, city_hall, workshop, quote_form):
        draft = quotes.create_quote(workshop, order.id, quote_form, submit=False)
        with pytest.raises(InvalidTransition):
            quotes.accept_quote(city_hall, draft.id)
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.SENT_FOR_QUOTES.value

    def test_reject(self, quotes, order, city_hall, workshop, quote_form):
        quote = quotes.create_quote(workshop, order.id, quote_form)
        assert quotes.reject_quote(city_hall, quote.id).status == QuoteStatus.REJECTED.value
        # A ordem continua cotada; a prefeitura ainda pode cancelá-la
        assert quotes.orders.get_service_order(order.id).status == ServiceOrderStatus.QUOTED.value


class TestVisibility:
    def test_workshop_sees_only_its_quote(self, quotes, order, city_hall, workshop, other_workshop, quote_form):
        quotes.create_quote(other_workshop, order.id, quote_form, submit=False)
        own = quotes.create_quote(workshop, order.id, quote_form)

        assert [quote.id for quote in quotes.list_quotes_for_order(workshop, order.id)] == [own.id]
        assert len(quotes.list_quotes_for_order(city_hall, order.id)) == 2
        assert [quote.id for quote in quotes.list_workshop_quotes(workshop)] == [own.id]

    def test_workshop_cannot_cancel_someone_elses_quote(self, quotes, order, workshop, other_workshop, quote_form):
        quote = quotes.create_quote(workshop, order.id, quote_form)
        with pytest.raises(PermissionDenied):
            quotes.cancel_quote(other_workshop, quote.id)

    def test_quoted_order_leaves_the_other_workshops_list(self, quotes, order, workshop, other_workshop,
                                                          quote_form):
        quotes.create_quote(workshop, order.id, quote_form)

        assert quotes.orders.list_service_orders(other_workshop) == []
        with pytest.raises(PermissionDenied):
            quotes.orders.get_visible_service_order(other_workshop, order.id)
        # Quem cotou continua vendo a ordem pela própria cotação
        assert [item.id for item in quotes.orders.list_service_orders(workshop)] == [order.id]
