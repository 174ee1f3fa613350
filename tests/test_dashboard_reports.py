"""
Testes dos indicadores do dashboard e da exportação para Excel.
"""

import io

import openpyxl
import pytest

from service_os.authorization import role_policy
from service_os.exceptions import PermissionDenied
from service_os.services.dashboard import WIDGET_LABELS, DashboardService
from service_os.services.quotes import QuoteService
from service_os.services.reports import HEADERS, export_service_orders


@pytest.fixture
def accepted_order(db, city_hall, workshop, order_form, quote_form):
    quotes = QuoteService(db)
    order = quotes.orders.create_service_order(city_hall, order_form)
    quotes.orders.send_for_quotes(city_hall, order.id)
    quote = quotes.create_quote(workshop, order.id, quote_form)
    quotes.accept_quote(city_hall, quote.id)
    return quotes.orders.get_service_order(order.id)


class TestDashboard:
    def test_widgets_follow_role_policy(self, db, city_hall, workshop, query_admin, admin):
        service = DashboardService(db)
        for user in (city_hall, workshop, query_admin, admin):
            stats = service.dashboard_stats(user)
            assert tuple(stats) == role_policy(user.role).dashboard_widgets
            assert set(stats) <= set(WIDGET_LABELS)

    def test_empty_dashboard(self, db, city_hall):
        stats = DashboardService(db).dashboard_stats(city_hall)
        assert stats["active_service_orders"] == 0
        assert stats["recent_service_orders"] == []

    def test_counts(self, db, accepted_order, city_hall, workshop, admin):
        service = DashboardService(db)
        assert service.dashboard_stats(city_hall)["active_service_orders"] == 1
        assert service.dashboard_stats(workshop)["accepted_quotes"] == 1
        assert service.dashboard_stats(workshop)["available_orders"] == 0

        admin_stats = service.dashboard_stats(admin)
        assert admin_stats["accepted_orders"] == 1
        assert admin_stats["workshops_count"] == 1
        assert admin_stats["city_halls_count"] == 1


class TestExport:
    def test_workbook_rows(self, accepted_order, query_admin, city_hall):
        content = export_service_orders(query_admin, [accepted_order], {city_hall.id: city_hall.display_name})

        sheet = openpyxl.load_workbook(io.BytesIO(content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0] == HEADERS
        assert rows[1][0] == accepted_order.number
        assert rows[1][2] == "Prefeitura de Teste"
        assert rows[1][HEADERS.index("Valor aceito")] == 370

    def test_empty_export_has_only_headers(self, admin):
        sheet = openpyxl.load_workbook(io.BytesIO(export_service_orders(admin, [], {}))).active
        assert sheet.max_row == 1

    def test_city_hall_cannot_export(self, city_hall):
        with pytest.raises(PermissionDenied):
            export_service_orders(city_hall, [], {})
