import sys
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

from service_os.authorization import role_policy
from service_os.models.quote import QUOTE_STATUS_LABELS, QuoteStatus
from service_os.models.role import ROLE_LABELS, Role
from service_os.models.service_order import STATUS_LABELS, ServiceOrderStatus

# Lógica para suportar PyInstaller e paths relativos
if getattr(sys, 'frozen', False):
    BASE_DIR = Path(sys._MEIPASS) / "service_os"
else:
    BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=BASE_DIR / "templates")

FLASH_KEY = "flash"


def flash(request: Request, message: str, category: str = "success") -> None:
    """Guarda uma mensagem (toast) para a próxima página renderizada."""
    request.session.setdefault(FLASH_KEY, [])
    request.session[FLASH_KEY] = request.session[FLASH_KEY] + [{"message": message, "category": category}]


def pop_flashes(request: Request) -> list[dict]:
    return request.session.pop(FLASH_KEY, [])


def money(value) -> str:
    """Formata em reais: 1234.5 -> 'R$ 1.234,50'."""
    text = f"{float(value or 0):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def order_status_label(value) -> str:
    return STATUS_LABELS.get(ServiceOrderStatus(value), value)


def quote_status_label(value) -> str:
    return QUOTE_STATUS_LABELS.get(QuoteStatus(value), value)


def role_label(value) -> str:
    return ROLE_LABELS.get(Role(value), value)


templates.env.filters["money"] = money
templates.env.filters["order_status"] = order_status_label
templates.env.filters["quote_status"] = quote_status_label
templates.env.filters["role_label"] = role_label


def render(request: Request, name: str, context: dict | None = None, user=None, status_code: int = 200):
    """Renderiza o template com usuário, menu do papel e mensagens pendentes."""
    context = dict(context or {})
    context.setdefault("title", "Service OS")
    context["user"] = user
    context["navigation"] = role_policy(user.role).navigation if user else ()
    context["flashes"] = pop_flashes(request)
    return templates.TemplateResponse(request, name, context, status_code=status_code)
