from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session as DBSession
from starlette import status

from service_os.database import get_db
from service_os.deps import get_current_user
from service_os.exceptions import ValidationError
from service_os.models.quote import SERVICE_LOCATIONS, ItemCategory, QuoteForm
from service_os.models.role import ADMIN_ROLES, Role
from service_os.models.service_order import (
    SERVICE_INFO_FORM_FIELDS, VEHICLE_FORM_FIELDS, FuelType, ServiceCategory, ServiceOrderForm,
    ServiceOrderStatus, ServiceType, TransmissionType, VehicleType,
)
from service_os.routers.common import handle_failure, redirect
from service_os.services.quotes import QuoteService, preview_totals
from service_os.services.result import attempt
from service_os.services.service_orders import ServiceOrderService
from service_os.services.user_directory import UserDirectory
from service_os.templating import flash, render
from service_os.workflow import BIDDING_STATUSES, OrderEvent, can_transition

router = APIRouter(prefix="/service-orders", tags=["service-orders"])

FORM_OPTIONS = {
    "vehicle_types": [e.value for e in VehicleType],
    "fuel_types": [e.value for e in FuelType],
    "transmission_types": [e.value for e in TransmissionType],
    "service_types": [e.value for e in ServiceType],
    "service_categories": [e.value for e in ServiceCategory],
}

# Erro do pydantic ("vehicle.year") -> campo do formulário ("year")
FORM_FIELD_NAMES = {
    **{f"vehicle.{target}": source for source, target in VEHICLE_FORM_FIELDS.items()},
    **{f"service_info.{target}": source for source, target in SERVICE_INFO_FORM_FIELDS.items()},
}


def _form_errors(exc: PydanticValidationError) -> dict:
    fields = ValidationError.from_pydantic(exc).fields
    return {FORM_FIELD_NAMES.get(name, name): message for name, message in fields.items()}


def _form_values(order) -> dict:
    """Valores planos do formulário a partir de uma OS gravada."""
    vehicle = order.vehicle or {}
    info = order.service_info or {}
    return {
        "vehicle_type": vehicle.get("type"), "brand": vehicle.get("brand"),
        "model": vehicle.get("model"), "year": vehicle.get("year"),
        "license_plate": vehicle.get("license_plate"), "fuel": vehicle.get("fuel"),
        "transmission": vehicle.get("transmission"), "color": vehicle.get("color"),
        "engine": vehicle.get("engine"), "chassis": vehicle.get("chassis"),
        "km": vehicle.get("km"), "vehicle_market_value": vehicle.get("market_value"),
        "registration": vehicle.get("registration"), "tank_capacity": vehicle.get("tank_capacity"),
        "service_type": info.get("type"), "service_category": info.get("category"),
        "service_city": info.get("city"), "vehicle_location": info.get("vehicle_location"),
        "notes": info.get("notes"),
    }


def _order_form_page(request, user, title, action, values, errors=None, status_code=200):
    return render(
        request,
        "service_orders/form.html",
        {"title": title, "action": action, "values": values, "errors": errors or {}, **FORM_OPTIONS},
        user=user,
        status_code=status_code,
    )


# Rota 1: Listar Ordens de Serviço (o filtro depende do papel)
@router.get("/", name="list_service_orders")
def list_service_orders(request: Request, user=Depends(get_current_user), db: DBSession = Depends(get_db)):
    result = attempt(ServiceOrderService(db).list_service_orders, user, default=[])
    if result.error:
        flash(request, result.error.message, "error")
    return render(
        request,
        "service_orders/list.html",
        {"title": "Ordens de Serviço", "orders": result.data, "load_error": result.error is not None},
        user=user,
    )


# Rota 2: Formulário de Nova OS (apenas prefeitura)
@router.get("/new", name="new_service_order_form")
def new_service_order_form(request: Request, user=Depends(get_current_user)):
    return _order_form_page(request, user, "Nova Ordem de Serviço", router.url_path_for("create_service_order"), {})


# Rota 3: Processar Cadastro de OS
@router.post("/", name="create_service_order")
async def create_service_order(request: Request, user=Depends(get_current_user), db: DBSession = Depends(get_db)):
    form_data = await request.form()
    try:
        form = ServiceOrderForm.from_form(form_data)
    except PydanticValidationError as e:
        return _order_form_page(
            request, user, "Nova Ordem de Serviço", router.url_path_for("create_service_order"),
            dict(form_data), _form_errors(e), status.HTTP_400_BAD_REQUEST,
        )

    result = attempt(ServiceOrderService(db).create_service_order, user, form)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("new_service_order_form"))
    flash(request, f"Ordem de serviço {result.data.number} criada como rascunho.")
    return redirect(router.url_path_for("show_service_order", order_id=result.data.id))


# Rota 4: Detalhes da OS (com histórico e ações disponíveis)
@router.get("/{order_id}", name="show_service_order")
def show_service_order(request: Request, order_id: str, user=Depends(get_current_user),
                       db: DBSession = Depends(get_db)):
    service = ServiceOrderService(db)
    result = attempt(service.get_visible_service_order, user, order_id)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_service_orders"))
    order = result.data

    history = attempt(service.get_history, order.id, default=[])
    if history.error:
        flash(request, history.error.message, "error")

    is_owner = user.role == Role.CITY_HALL and order.city_hall_id == user.id
    workshops = []
    if is_owner and order.status == ServiceOrderStatus.DRAFT.value:
        workshops = attempt(UserDirectory(db).list_workshops, default=[]).data

    actions = {
        "edit": is_owner and order.status == ServiceOrderStatus.DRAFT.value,
        "send": is_owner and can_transition(order.status, OrderEvent.SEND_FOR_QUOTES),
        "cancel": (is_owner or user.role == Role.GENERAL_ADMIN)
        and can_transition(order.status, OrderEvent.CANCEL),
        "quote": user.role == Role.WORKSHOP
        and ServiceOrderStatus(order.status) in BIDDING_STATUSES,
        "view_quotes": is_owner or user.role in ADMIN_ROLES or user.role == Role.WORKSHOP,
    }
    return render(
        request,
        "service_orders/detail.html",
        {
            "title": f"Ordem de Serviço {order.number}",
            "order": order,
            "history": history.data,
            "actions": actions,
            "workshops": workshops,
        },
        user=user,
    )


# Rota 5: Formulário de Edição (apenas rascunho da própria prefeitura)
@router.get("/{order_id}/edit", name="edit_service_order_form")
def edit_service_order_form(request: Request, order_id: str, user=Depends(get_current_user),
                            db: DBSession = Depends(get_db)):
    result = attempt(ServiceOrderService(db).get_visible_service_order, user, order_id)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_service_orders"))
    order = result.data
    if order.status != ServiceOrderStatus.DRAFT.value:
        flash(request, "Só é possível editar ordens de serviço em rascunho.", "error")
        return redirect(router.url_path_for("show_service_order", order_id=order.id))
    return _order_form_page(
        request, user, f"Editar Ordem de Serviço {order.number}",
        router.url_path_for("update_service_order", order_id=order.id), _form_values(order),
    )


# Rota 6: Processar Atualização da OS
@router.post("/{order_id}/update", name="update_service_order")
async def update_service_order(request: Request, order_id: str, user=Depends(get_current_user),
                               db: DBSession = Depends(get_db)):
    form_data = await request.form()
    detail_url = router.url_path_for("show_service_order", order_id=order_id)
    try:
        form = ServiceOrderForm.from_form(form_data)
    except PydanticValidationError as e:
        return _order_form_page(
            request, user, "Editar Ordem de Serviço",
            router.url_path_for("update_service_order", order_id=order_id),
            dict(form_data), _form_errors(e), status.HTTP_400_BAD_REQUEST,
        )

    result = attempt(ServiceOrderService(db).update_service_order, user, order_id, form)
    if result.error:
        return handle_failure(request, result.error, detail_url)
    flash(request, "Ordem de serviço atualizada.")
    return redirect(detail_url)


# Rota 7: Enviar para cotação
@router.post("/{order_id}/send", name="send_service_order")
async def send_service_order(request: Request, order_id: str, user=Depends(get_current_user),
                             db: DBSession = Depends(get_db)):
    form_data = await request.form()
    detail_url = router.url_path_for("show_service_order", order_id=order_id)
    result = attempt(ServiceOrderService(db).send_for_quotes, user, order_id, form_data.getlist("workshop_ids"))
    if result.error:
        return handle_failure(request, result.error, detail_url)
    flash(request, "Ordem de serviço enviada para cotação.")
    return redirect(detail_url)


# Rota 8: Cancelar OS
@router.post("/{order_id}/cancel", name="cancel_service_order")
def cancel_service_order(request: Request, order_id: str, user=Depends(get_current_user),
                         db: DBSession = Depends(get_db)):
    detail_url = router.url_path_for("show_service_order", order_id=order_id)
    result = attempt(ServiceOrderService(db).cancel_service_order, user, order_id)
    if result.error:
        return handle_failure(request, result.error, detail_url)
    flash(request, "Ordem de serviço cancelada.")
    return redirect(detail_url)


# Rota 9: Cotações da OS (comparação e aceite pela prefeitura)
@router.get("/{order_id}/quotes", name="service_order_quotes")
def service_order_quotes(request: Request, order_id: str, user=Depends(get_current_user),
                         db: DBSession = Depends(get_db)):
    service = QuoteService(db)
    order_result = attempt(service.orders.get_visible_service_order, user, order_id)
    if order_result.error:
        return handle_failure(request, order_result.error, router.url_path_for("list_service_orders"))

    quotes = attempt(service.list_quotes_for_order, user, order_id, default=[])
    if quotes.error:
        flash(request, quotes.error.message, "error")
    order = order_result.data
    can_decide = (
        user.role == Role.CITY_HALL
        and order.city_hall_id == user.id
        and order.status == ServiceOrderStatus.QUOTED.value
    )
    return render(
        request,
        "service_orders/quotes.html",
        {
            "title": f"Cotações da OS {order.number}",
            "order": order,
            "quotes": quotes.data,
            "can_decide": can_decide,
            "load_error": quotes.error is not None,
        },
        user=user,
    )


def _quote_form_page(request, user, order, values, errors=None, status_code=200):
    return render(
        request,
        "quotes/form.html",
        {
            "title": f"Nova Cotação para a OS {order.number}",
            "order": order,
            "values": values,
            "errors": errors or {},
            "locations": SERVICE_LOCATIONS,
            "categories": [e.value for e in ItemCategory],
            "totals": preview_totals(values).as_dict(),
        },
        user=user,
        status_code=status_code,
    )


# Rota 10: Formulário de Nova Cotação (apenas oficina)
@router.get("/{order_id}/quote/new", name="new_quote_form")
def new_quote_form(request: Request, order_id: str, user=Depends(get_current_user),
                   db: DBSession = Depends(get_db)):
    service = QuoteService(db)
    result = attempt(service.orders.get_visible_service_order, user, order_id)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_service_orders"))
    order = result.data
    values = service.prepare_quote_defaults(order)
    values.update({"items-0-quantity": 1, "items-0-unit_price": 0, "items-0-category": ItemCategory.LABOR.value})
    return _quote_form_page(request, user, order, values)


# Rota 11: Processar Cotação (rascunho ou envio)
@router.post("/{order_id}/quote", name="create_quote")
async def create_quote(request: Request, order_id: str, user=Depends(get_current_user),
                       db: DBSession = Depends(get_db)):
    form_data = await request.form()
    service = QuoteService(db)
    order_result = attempt(service.orders.get_visible_service_order, user, order_id)
    if order_result.error:
        return handle_failure(request, order_result.error, router.url_path_for("list_service_orders"))

    try:
        form = QuoteForm.from_form(form_data)
    except PydanticValidationError as e:
        return _quote_form_page(
            request, user, order_result.data, dict(form_data),
            ValidationError.from_pydantic(e).fields, status.HTTP_400_BAD_REQUEST,
        )

    submit = form_data.get("action", "submit") != "draft"
    result = attempt(service.create_quote, user, order_id, form, submit=submit)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("show_service_order", order_id=order_id))
    flash(request, "Cotação enviada com sucesso." if submit else "Cotação salva como rascunho.")
    return redirect(router.url_path_for("service_order_quotes", order_id=order_id))


# Rota 12: Recalcular totais enquanto o formulário é preenchido
@router.post("/{order_id}/quote/preview", name="preview_quote_totals")
async def preview_quote_totals(request: Request, order_id: str, user=Depends(get_current_user)):
    form_data = await request.form()
    return preview_totals(form_data).as_dict()
