from fastapi import APIRouter, Depends, Form, Request

from service_os.authorization import DEFAULT_ROUTE
from service_os.deps import get_auth_store
from service_os.exceptions import AuthError, IdentityResolutionError
from service_os.routers.common import redirect
from service_os.templating import flash, render

router = APIRouter(tags=["auth"])


# --- ROTA 1: MOSTRAR O FORMULÁRIO DE LOGIN ---
@router.get("/login", name="login_form")
def login_form(request: Request, store=Depends(get_auth_store)):
    """Exibe o formulário de login."""
    if store.current_user() is not None:
        return redirect(DEFAULT_ROUTE)
    return render(request, "auth/login.html", {"title": "Login"})


# --- ROTA 2: PROCESSAR O LOGIN ---
@router.post("/login", name="login_process")
def login_process(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    store=Depends(get_auth_store),
):
    """Valida as credenciais e abre a sessão."""
    try:
        user = store.login(email, password)
    except IdentityResolutionError:
        # Conta válida, perfil indisponível: página de erro com recarga
        raise
    except AuthError as e:
        return render(
            request,
            "auth/login.html",
            {"title": "Login", "error": e.message, "email": email},
            status_code=400,
        )
    flash(request, f"Bem-vindo, {user.display_name}!")
    return redirect(DEFAULT_ROUTE)


# --- ROTA 3: LOGOUT ---
@router.api_route("/logout", methods=["GET", "POST"], name="logout")
def logout(request: Request, store=Depends(get_auth_store)):
    """Encerra a sessão do usuário."""
    store.logout()
    request.session.clear()
    return redirect(router.url_path_for("login_form"))
