import logging

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import RedirectResponse
from starlette import status as status_codes

# --- Configuração e banco de dados ---
from service_os.config import settings
from service_os.logging_config import configure_logging
from service_os.database import engine, Base
from service_os import database_models  # noqa: F401  (registra as tabelas no metadata)
from service_os.auth_utils import create_admin_user_if_not_exists
from service_os.exceptions import AuthError, IdentityResolutionError, PermissionDenied, ServiceOSError
from service_os.deps import WebRedirect
from service_os.templating import render, templates
# -----------------------------------------------------------

# --- Importação dos Roteadores ---
from service_os.routers import auth
from service_os.routers.dashboard import router as dashboard_router
from service_os.routers.service_orders import router as service_orders_router
from service_os.routers.quotes import router as quotes_router
from service_os.routers.admin_users import router as admin_users_router
from service_os.routers.reports import router as reports_router
# ---------------------------------

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("service_os")

# Cria a instância principal do FastAPI
app = FastAPI(title="Service OS - Ordens de Serviço e Cotações")
Base.metadata.create_all(bind=engine)
create_admin_user_if_not_exists()

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    https_only=settings.HTTPS_ONLY,
)

# Inclui os roteadores (ordem não importa)
app.include_router(auth.router)
app.include_router(dashboard_router)
app.include_router(service_orders_router)
app.include_router(quotes_router)
app.include_router(admin_users_router)
app.include_router(reports_router)


# --- Tratamento de erros ---
@app.exception_handler(WebRedirect)
def web_redirect_handler(request: Request, exc: WebRedirect):
    return RedirectResponse(url=exc.headers["Location"], status_code=status_codes.HTTP_303_SEE_OTHER)


@app.exception_handler(PermissionDenied)
def permission_denied_handler(request: Request, exc: PermissionDenied):
    # Sem mensagem: o usuário simplesmente volta ao dashboard
    return RedirectResponse(url="/dashboard", status_code=status_codes.HTTP_303_SEE_OTHER)


@app.exception_handler(IdentityResolutionError)
def identity_error_handler(request: Request, exc: IdentityResolutionError):
    logger.error("Falha ao resolver o perfil da sessão: %s", exc.message)
    return render(
        request,
        "error.html",
        {"title": "Erro", "message": exc.message, "reload": True},
        status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.exception_handler(AuthError)
def auth_error_handler(request: Request, exc: AuthError):
    return RedirectResponse(url="/login", status_code=status_codes.HTTP_303_SEE_OTHER)


@app.exception_handler(ServiceOSError)
def service_error_handler(request: Request, exc: ServiceOSError):
    logger.exception("Erro não tratado na rota %s", request.url.path)
    return render(
        request,
        "error.html",
        {"title": "Erro", "message": exc.message, "reload": True},
        status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Erro inesperado na rota %s", request.url.path)
    # Fora do SessionMiddleware: sem usuário nem mensagens da sessão
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Erro", "message": "Erro inesperado.", "reload": True,
         "user": None, "navigation": (), "flashes": []},
        status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# Rota de redirecionamento para o dashboard
@app.get("/", include_in_schema=False)
def redirect_to_dashboard():
    return RedirectResponse(
        url="/dashboard",
        status_code=status_codes.HTTP_302_FOUND
    )


@app.get("/status")
def status(request: Request):
    return {
        "status": "ok",
        "host": request.client.host if request.client else None,
        "scheme": request.url.scheme,
        "path": request.url.path,
    }


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
