from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session as DBSession

from service_os.database import get_db
from service_os.deps import get_current_user
from service_os.services.dashboard import WIDGET_LABELS, DashboardService
from service_os.services.result import attempt
from service_os.templating import flash, render

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", name="dashboard")
def dashboard(request: Request, user=Depends(get_current_user), db: DBSession = Depends(get_db)):
    result = attempt(DashboardService(db).dashboard_stats, user, default={})
    if result.error:
        flash(request, result.error.message, "error")
    return render(
        request,
        "dashboard.html",
        {
            "title": "Dashboard",
            "stats": result.data,
            "labels": WIDGET_LABELS,
            "load_error": result.error is not None,
        },
        user=user,
    )
