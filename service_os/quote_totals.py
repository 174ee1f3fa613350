"""
Cálculo dos totais de uma cotação.

Os itens são separados por categoria (peças / mão de obra) e cada categoria
recebe o seu próprio percentual de desconto. O cálculo é puro: mesmas
entradas, mesmo resultado, sem acesso a banco ou estado global.

Os percentuais devem chegar já limitados a [0, 100]; quem chama é
responsável por isso (ver models.quote.clamp_percentage e QuoteForm).
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass

from service_os.models.quote import ItemCategory


@dataclass(frozen=True)
class QuoteTotals:
    parts_subtotal: float = 0.0
    labor_subtotal: float = 0.0
    parts_discount_amount: float = 0.0
    labor_discount_amount: float = 0.0
    parts_total: float = 0.0
    labor_total: float = 0.0
    subtotal: float = 0.0
    total_discount: float = 0.0
    total: float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)


def _field(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _number(value) -> float:
    # O formulário é recalculado enquanto o usuário digita: campo vazio ou
    # inválido (ou não finito) conta como zero em vez de propagar NaN
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _category(item):
    value = _field(item, "category")
    try:
        return ItemCategory(value)
    except ValueError:
        return None


def _subtotal(items, category: ItemCategory) -> float:
    total = 0.0
    for item in items:
        if _category(item) == category:
            # produto que estoura para infinito também vale zero
            total += _number(_number(_field(item, "quantity")) * _number(_field(item, "unit_price")))
    return _number(total)


def calculate_totals(
    items: Iterable,
    parts_discount_percentage: float = 0,
    labor_discount_percentage: float = 0,
) -> QuoteTotals:
    """Calcula subtotais, descontos e total final de uma lista de itens."""
    items = list(items)
    parts_discount_percentage = _number(parts_discount_percentage)
    labor_discount_percentage = _number(labor_discount_percentage)

    parts_subtotal = _subtotal(items, ItemCategory.PARTS)
    labor_subtotal = _subtotal(items, ItemCategory.LABOR)

    parts_discount_amount = parts_subtotal * parts_discount_percentage / 100
    labor_discount_amount = labor_subtotal * labor_discount_percentage / 100

    parts_total = parts_subtotal - parts_discount_amount
    labor_total = labor_subtotal - labor_discount_amount

    return QuoteTotals(
        parts_subtotal=parts_subtotal,
        labor_subtotal=labor_subtotal,
        parts_discount_amount=parts_discount_amount,
        labor_discount_amount=labor_discount_amount,
        parts_total=parts_total,
        labor_total=labor_total,
        subtotal=parts_subtotal + labor_subtotal,
        total_discount=parts_discount_amount + labor_discount_amount,
        total=parts_total + labor_total,
    )
