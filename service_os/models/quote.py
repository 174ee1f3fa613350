import math
import re
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .user import Percentage


class QuoteStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


QUOTE_STATUS_LABELS = {
    QuoteStatus.PENDING: "Pendente",
    QuoteStatus.SUBMITTED: "Enviada",
    QuoteStatus.ACCEPTED: "Aceita",
    QuoteStatus.REJECTED: "Rejeitada",
    QuoteStatus.CANCELLED: "Cancelada",
}

# Cotações que ainda disputam a ordem de serviço
OPEN_QUOTE_STATUSES = frozenset({QuoteStatus.PENDING, QuoteStatus.SUBMITTED})


class ItemCategory(str, Enum):
    PARTS = "PARTS"
    LABOR = "LABOR"


SERVICE_LOCATIONS = ("Na oficina", "No local do cliente", "Guincho + oficina")


class QuoteItem(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    category: ItemCategory
    brand: Optional[str] = None
    part_number: Optional[str] = None

    @field_validator("description")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Descrição é obrigatória")
        return value

    @model_validator(mode="after")
    def _parts_only_fields(self):
        # Marca e código da peça só fazem sentido para peças
        if self.category == ItemCategory.LABOR:
            self.brand = None
            self.part_number = None
        return self


class QuoteForm(BaseModel):
    estimated_delivery_days: int = Field(..., ge=1)
    estimated_start_date: date
    valid_until: date
    service_location: str
    notes: Optional[str] = None
    items: list[QuoteItem] = Field(..., min_length=1)
    parts_discount_percentage: Percentage = 0.0
    labor_discount_percentage: Percentage = 0.0

    @field_validator("service_location")
    @classmethod
    def _known_location(cls, value: str) -> str:
        if value not in SERVICE_LOCATIONS:
            raise ValueError("Local do serviço inválido")
        return value

    @classmethod
    def from_form(cls, form) -> "QuoteForm":
        data = {
            key: form.get(key)
            for key in (
                "estimated_delivery_days", "estimated_start_date", "valid_until",
                "service_location", "notes",
                "parts_discount_percentage", "labor_discount_percentage",
            )
            if form.get(key) not in (None, "")
        }
        data["items"] = parse_items(form)
        return cls.model_validate(data)


ITEM_KEY = re.compile(r"^items-(\d+)-(\w+)$")


def parse_items(form) -> list[dict]:
    """Agrupa os campos 'items-<n>-<campo>' do formulário, na ordem de <n>."""
    rows: dict[int, dict] = {}
    for key, value in form.items():
        match = ITEM_KEY.match(key)
        if not match or value in (None, ""):
            continue
        rows.setdefault(int(match.group(1)), {})[match.group(2)] = value
    return [rows[index] for index in sorted(rows)]


def clamp_percentage(value) -> float:
    """Converte a entrada para número e limita a [0, 100]. Entrada inválida ou não finita vale 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return min(max(number, 0.0), 100.0)
