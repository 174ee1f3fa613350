from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from service_os.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    options = {}
    if url.startswith("sqlite"):
        # 'check_same_thread' é necessário apenas para SQLite
        options["connect_args"] = {"check_same_thread": False}
        # Banco em memória: todas as sessões precisam da mesma conexão
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
    return options


# 1. Engine de Conexão
engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))

# 2. Fábrica de Sessões
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 3. Base Declarativa (os modelos de tabela herdam desta)
Base = declarative_base()


def get_db():
    """Dependência do FastAPI que abre e fecha a sessão do banco por requisição."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
