import logging

from passlib.context import CryptContext
from sqlalchemy.orm import Session as DBSession

from service_os.config import settings
from service_os.database import SessionLocal
from service_os.database_models import AuthUser, UserProfile
from service_os.models.role import Role

logger = logging.getLogger(__name__)

# Algoritmo de hashing das senhas
pwd_context = CryptContext(schemes=["scrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica se a senha pura corresponde ao hash salvo."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Gera um hash para a senha pura."""
    return pwd_context.hash(password)


def create_admin_user_if_not_exists(db: DBSession | None = None):
    """Cria o administrador geral padrão se ainda não existir nenhum."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        admin = db.query(UserProfile).filter(UserProfile.user_type == Role.GENERAL_ADMIN.value).first()
        if admin is not None:
            logger.info("Administrador geral já existe.")
            return admin

        account = db.query(AuthUser).filter(AuthUser.email == settings.ADMIN_EMAIL).first()
        if account is None:
            account = AuthUser(
                email=settings.ADMIN_EMAIL,
                password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            )
            db.add(account)
            db.flush()

        admin = UserProfile(
            auth_id=account.id,
            user_type=Role.GENERAL_ADMIN.value,
            login_number="admin",
            name="Administrador do Sistema",
            responsible_email=settings.ADMIN_EMAIL,
        )
        db.add(admin)
        db.commit()
        logger.info("Administrador geral padrão criado (%s).", settings.ADMIN_EMAIL)
        return admin
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()
