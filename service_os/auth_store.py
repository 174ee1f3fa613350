"""
Estado de autenticação da requisição.

O AuthStore é criado por injeção de dependência (um por requisição),
assina os eventos do provedor de identidade e mantém o usuário resolvido.
Se o perfil não puder ser carregado depois do login, o store fica sem
usuário e guarda o erro: quem usa o store deve mostrar a página de erro,
nunca um acesso parcial.
"""

import logging
from collections.abc import Callable
from typing import Optional

from service_os.exceptions import AuthError, IdentityResolutionError, ServiceOSError
from service_os.identity import IdentityProvider, Session, SessionEvent
from service_os.models.user import User

logger = logging.getLogger(__name__)


class AuthStore:
    def __init__(self, identity: IdentityProvider, directory):
        self.identity = identity
        self.directory = directory
        self.session: Optional[Session] = None
        self.error: Optional[AuthError] = None
        self._user: Optional[User] = None
        self._listeners: list[Callable[[Optional[User]], None]] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._generation = 0

    def start(self) -> None:
        self._unsubscribe = self.identity.on_session_change(self._on_session_change)
        try:
            session = self.identity.get_session()
        except AuthError as e:
            self.error = e
            return
        if session is not None:
            self._on_session_change(SessionEvent.SIGNED_IN, session)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    def current_user(self) -> Optional[User]:
        return self._user

    def subscribe(self, listener: Callable[[Optional[User]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def login(self, email: str, password: str) -> User:
        self.identity.login(email, password)
        if self.error is not None:
            raise self.error
        return self._user

    def logout(self) -> None:
        self.identity.logout()

    def _on_session_change(self, event: SessionEvent, session: Optional[Session]) -> None:
        # Cada evento recebe um número; um resultado antigo nunca
        # sobrescreve um evento mais novo (logout depois de login vence)
        self._generation += 1
        generation = self._generation

        if event == SessionEvent.SIGNED_OUT or session is None:
            self._set(None, None, None)
            logger.info("Sessão encerrada")
            return

        try:
            user = self.directory.resolve_user(session.user_id, session.email)
        except ServiceOSError:
            logger.exception("Falha ao resolver o perfil da conta %s", session.user_id)
            if generation == self._generation:
                self._set(None, None, IdentityResolutionError())
            return

        if generation == self._generation:
            self._set(session, user, None)

    def _set(self, session, user, error) -> None:
        self.session = session
        self._user = user
        self.error = error
        for listener in list(self._listeners):
            listener(user)
