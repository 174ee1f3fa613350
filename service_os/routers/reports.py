from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session as DBSession
from starlette.responses import Response

from service_os.database import get_db
from service_os.deps import get_current_user
from service_os.routers.common import handle_failure
from service_os.services.reports import export_service_orders
from service_os.services.result import attempt
from service_os.services.service_orders import ServiceOrderService
from service_os.services.user_directory import UserDirectory

router = APIRouter(prefix="/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/service-orders.xlsx", name="export_service_orders")
def export_service_orders_xlsx(request: Request, user=Depends(get_current_user),
                               db: DBSession = Depends(get_db)):
    orders = attempt(ServiceOrderService(db).list_service_orders, user, default=[])
    if orders.error:
        return handle_failure(request, orders.error, "/dashboard")
    city_halls = attempt(UserDirectory(db).list_city_halls, default=[]).data
    names = {city_hall.id: city_hall.display_name for city_hall in city_halls}

    result = attempt(export_service_orders, user, orders.data, names)
    if result.error:
        return handle_failure(request, result.error, "/dashboard")
    return Response(
        content=result.data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="ordens-de-servico.xlsx"'},
    )
