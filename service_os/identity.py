"""
Provedor de identidade: login por e-mail e senha, sessão guardada no cookie
assinado da requisição e notificação de entrada/saída para os interessados.
"""

import logging
import secrets
from collections.abc import Callable, MutableMapping
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from service_os.auth_utils import get_password_hash, verify_password
from service_os.database_models import AuthUser
from service_os.exceptions import AuthError, ValidationError

logger = logging.getLogger(__name__)

SESSION_KEY = "auth"


class SessionEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: str
    email: str


SessionListener = Callable[[SessionEvent, Optional[Session]], None]


class IdentityProvider:
    def __init__(self, db: DBSession, session_store: MutableMapping):
        self.db = db
        self.session_store = session_store
        self._listeners: list[SessionListener] = []

    def login(self, email: str, password: str) -> Session:
        email = (email or "").strip().lower()
        try:
            account = self.db.query(AuthUser).filter(AuthUser.email == email).first()
        except SQLAlchemyError as e:
            logger.exception("Falha ao consultar conta de %s", email)
            raise AuthError("Serviço de autenticação indisponível.") from e

        if account is None or not self._password_matches(password, account.password_hash):
            logger.info("Login recusado para %s", email)
            raise AuthError()

        session = Session(
            access_token=secrets.token_urlsafe(32),
            user_id=account.id,
            email=account.email,
        )
        self.session_store[SESSION_KEY] = asdict(session)
        logger.info("Login de %s", email)
        self._emit(SessionEvent.SIGNED_IN, session)
        return session

    def logout(self) -> None:
        self.session_store.pop(SESSION_KEY, None)
        self._emit(SessionEvent.SIGNED_OUT, None)

    def get_session(self) -> Optional[Session]:
        data = self.session_store.get(SESSION_KEY)
        if not data:
            return None
        try:
            session = Session(**data)
            account = self.db.get(AuthUser, session.user_id)
        except TypeError:
            # Cookie com formato antigo/inválido
            self.session_store.pop(SESSION_KEY, None)
            return None
        except SQLAlchemyError as e:
            logger.exception("Falha ao validar sessão")
            raise AuthError("Serviço de autenticação indisponível.") from e
        if account is None:
            # Conta removida pelo administrador: a sessão deixa de valer
            self.session_store.pop(SESSION_KEY, None)
            return None
        return session

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: SessionEvent, session: Optional[Session]) -> None:
        # Entregues em ordem de chegada, um de cada vez
        for listener in list(self._listeners):
            listener(event, session)

    @staticmethod
    def _password_matches(password: str, password_hash: str) -> bool:
        try:
            return verify_password(password or "", password_hash)
        except ValueError:
            return False

    # --- Contas (usadas pela administração de usuários) ---

    def create_account(self, email: str, password: str) -> AuthUser:
        """Cria a conta na transação corrente (sem commit)."""
        email = email.strip().lower()
        if self.db.query(AuthUser).filter(AuthUser.email == email).first() is not None:
            raise ValidationError(fields={"responsible_email": "E-mail já cadastrado"})
        account = AuthUser(email=email, password_hash=get_password_hash(password))
        self.db.add(account)
        self.db.flush()
        return account

    def update_account(self, account_id: str, email: str | None = None, password: str | None = None) -> None:
        account = self.db.get(AuthUser, account_id)
        if account is None:
            return
        if email:
            email = email.strip().lower()
            other = self.db.query(AuthUser).filter(AuthUser.email == email).first()
            if other is not None and other.id != account_id:
                raise ValidationError(fields={"responsible_email": "E-mail já cadastrado"})
            account.email = email
        if password:
            account.password_hash = get_password_hash(password)
        self.db.flush()

    def delete_account(self, account_id: str) -> None:
        account = self.db.get(AuthUser, account_id)
        if account is not None:
            self.db.delete(account)
            self.db.flush()
