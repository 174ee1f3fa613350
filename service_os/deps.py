"""Dependências das rotas: AuthStore da requisição e usuário autenticado."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session as DBSession
from starlette import status

from service_os.auth_store import AuthStore
from service_os.authorization import redirect_target
from service_os.database import get_db
from service_os.identity import IdentityProvider
from service_os.services.user_directory import UserDirectory


class WebRedirect(HTTPException):
    """Exceção que leva o navegador para outra página (login ou dashboard)."""

    def __init__(self, location: str):
        super().__init__(status_code=status.HTTP_303_SEE_OTHER, headers={"Location": location})


def get_auth_store(request: Request, db: DBSession = Depends(get_db)):
    """Cria o AuthStore da requisição e o encerra ao final dela."""
    store = AuthStore(IdentityProvider(db, request.session), UserDirectory(db))
    store.start()
    try:
        yield store
    finally:
        store.close()


def get_current_user(request: Request, store: AuthStore = Depends(get_auth_store)):
    """
    Exige usuário autenticado e com acesso à rota atual.
    Sem login: redireciona para /login. Papel sem acesso: volta ao dashboard.
    """
    if store.error is not None:
        # Sessão válida mas perfil não carregado: nada de acesso parcial
        raise store.error
    target = redirect_target(request.url.path, store.session, store.current_user())
    if target is not None:
        raise WebRedirect(target)
    return store.current_user()
