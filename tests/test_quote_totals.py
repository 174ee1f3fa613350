"""
Testes do cálculo de totais da cotação.
"""

import math

import pytest

from service_os.models.quote import clamp_percentage
from service_os.quote_totals import QuoteTotals, calculate_totals
from service_os.services.quotes import preview_totals


def item(quantity, unit_price, category):
    return {"description": "x", "quantity": quantity, "unit_price": unit_price, "category": category}


class TestCalculateTotals:
    def test_reference_example(self):
        """2 x 100 em peças, 1 x 200 em mão de obra, descontos 10% e 5%."""
        totals = calculate_totals(
            [item(2, 100, "PARTS"), item(1, 200, "LABOR")],
            parts_discount_percentage=10,
            labor_discount_percentage=5,
        )

        assert totals.parts_subtotal == 200
        assert totals.labor_subtotal == 200
        assert totals.parts_discount_amount == 20
        assert totals.labor_discount_amount == 10
        assert totals.parts_total == 180
        assert totals.labor_total == 190
        assert totals.subtotal == 400
        assert totals.total_discount == 30
        assert totals.total == 370

    def test_empty_items_are_all_zero(self):
        totals = calculate_totals([], 50, 50)
        assert totals == QuoteTotals()
        assert all(value == 0 for value in totals.as_dict().values())

    @pytest.mark.parametrize("bad_value", [None, "", "abc", float("nan"), "1e999", "inf", "-inf", float("inf")])
    def test_missing_numbers_count_as_zero(self, bad_value):
        totals = calculate_totals(
            [item(bad_value, 100, "PARTS"), item(1, bad_value, "LABOR"), item(1, 50, "LABOR")],
            parts_discount_percentage=bad_value,
            labor_discount_percentage=0,
        )
        assert totals.parts_subtotal == 0
        assert totals.labor_subtotal == 50
        assert not math.isnan(totals.total)
        assert totals.total == 50

    def test_unknown_category_is_ignored(self):
        totals = calculate_totals([item(1, 100, "OTHER"), item(1, 10, "PARTS")])
        assert totals.subtotal == 10

    def test_accepts_objects_with_attributes(self, quote_form):
        totals = calculate_totals(quote_form.items, 10, 5)
        assert totals.total == 370

    @pytest.mark.parametrize("parts_discount,labor_discount", [(0, 0), (100, 100), (33.3, 12.5), (7, 99.9)])
    def test_total_is_subtotal_minus_discount(self, parts_discount, labor_discount):
        items = [item(3, 19.99, "PARTS"), item(2, 0.1, "PARTS"), item(7, 45.5, "LABOR")]
        totals = calculate_totals(items, parts_discount, labor_discount)

        assert abs(totals.total - (totals.subtotal - totals.total_discount)) < 1e-9
        assert totals.total >= 0

    def test_full_discount_zeroes_total(self):
        totals = calculate_totals([item(1, 80, "PARTS"), item(1, 20, "LABOR")], 100, 100)
        assert totals.total == 0
        assert totals.total_discount == 100

    def test_overflowing_line_counts_as_zero(self):
        totals = calculate_totals([item(1e200, 1e200, "PARTS"), item(1, 30, "PARTS")], 0, 0)
        assert totals.parts_subtotal == 30
        assert totals.total == 30


class TestPreviewTotals:
    def test_infinite_quantity_does_not_spread_nan(self):
        totals = preview_totals({
            "items-0-quantity": "1e999",
            "items-0-unit_price": "0",
            "items-0-category": "PARTS",
            "items-1-quantity": "2",
            "items-1-unit_price": "15",
            "items-1-category": "LABOR",
        })
        assert all(math.isfinite(value) for value in totals.as_dict().values())
        assert totals.parts_subtotal == 0
        assert totals.total == 30

    @pytest.mark.parametrize("raw,expected", [("1e999", 0), ("-inf", 0), ("nan", 0), ("150", 100), ("-5", 0), ("12.5", 12.5)])
    def test_discount_percentage_is_clamped(self, raw, expected):
        assert clamp_percentage(raw) == expected
