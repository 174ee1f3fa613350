"""Exportação das ordens de serviço para planilha Excel."""

import io

import openpyxl
from openpyxl.styles import Font

from service_os.authorization import require_operation
from service_os.models.quote import QuoteStatus
from service_os.models.service_order import STATUS_LABELS, ServiceOrderStatus
from service_os.models.user import User

HEADERS = (
    "Número", "Status", "Prefeitura", "Tipo de veículo", "Marca", "Modelo", "Ano",
    "Placa", "Tipo de serviço", "Cidade", "Cotações", "Valor aceito", "Criada em",
)


def export_service_orders(user: User, orders, city_hall_names: dict[str, str]) -> bytes:
    """Gera o .xlsx com uma linha por ordem de serviço."""
    require_operation(user, "export_reports")

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Ordens de Serviço"
    sheet.append(HEADERS)
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for order in orders:
        vehicle = order.vehicle or {}
        service_info = order.service_info or {}
        accepted = [quote.total for quote in order.quotes if quote.status == QuoteStatus.ACCEPTED.value]
        sheet.append([
            order.number,
            STATUS_LABELS[ServiceOrderStatus(order.status)],
            city_hall_names.get(order.city_hall_id, ""),
            vehicle.get("type"),
            vehicle.get("brand"),
            vehicle.get("model"),
            vehicle.get("year"),
            vehicle.get("license_plate"),
            service_info.get("type"),
            service_info.get("city"),
            len(order.quotes),
            accepted[0] if accepted else None,
            order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else None,
        ])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
