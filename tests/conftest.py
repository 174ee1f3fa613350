"""
Fixtures compartilhadas.

O banco em memória precisa ser configurado antes de qualquer import da
aplicação, porque a engine é criada na importação de service_os.database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "chave-de-teste"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ADMIN_PASSWORD"] = "senha123"

from datetime import date, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from service_os.auth_utils import create_admin_user_if_not_exists  # noqa: E402
from service_os.database import Base, SessionLocal, engine  # noqa: E402
from service_os.models.quote import QuoteForm  # noqa: E402
from service_os.models.service_order import ServiceOrderForm  # noqa: E402
from service_os.models.user import User, UserForm  # noqa: E402
from service_os.services.user_directory import UserDirectory  # noqa: E402

PASSWORD = "senha123"


@pytest.fixture
def db():
    """Schema recriado do zero a cada teste."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin(db):
    return User.from_record(create_admin_user_if_not_exists(db))


@pytest.fixture
def make_user(db, admin):
    """Cria um usuário pelo diretório, como o administrador faria."""
    directory = UserDirectory(db)

    def _make(role: str, login: str, **profile):
        form = {
            "user_type": role,
            "login_number": login,
            "name": login,
            "responsible_email": f"{login}@example.com",
            "password": PASSWORD,
            **{key: str(value) for key, value in profile.items()},
        }
        return directory.create_user(admin, UserForm.from_form(form))

    return _make


@pytest.fixture
def city_hall(make_user):
    return make_user(
        "CITY_HALL", "prefeitura",
        trade_name="Prefeitura de Teste",
        parts_discount_percentage=10,
        labor_discount_percentage=5,
    )


@pytest.fixture
def other_city_hall(make_user):
    return make_user("CITY_HALL", "prefeitura2", trade_name="Outra Prefeitura")


@pytest.fixture
def workshop(make_user):
    return make_user("WORKSHOP", "oficina", trade_name="Oficina Central")


@pytest.fixture
def other_workshop(make_user):
    return make_user("WORKSHOP", "oficina2", trade_name="Oficina do Bairro")


@pytest.fixture
def query_admin(make_user):
    return make_user("QUERY_ADMIN", "consulta")


@pytest.fixture
def order_form():
    return ServiceOrderForm.from_form({
        "vehicle_type": "CAR",
        "brand": "Fiat",
        "model": "Uno",
        "year": "2018",
        "license_plate": "abc1d23",
        "fuel": "FLEX",
        "km": "85000",
        "service_type": "REPAIR",
        "service_category": "MECHANICAL",
        "service_city": "Campinas",
        "notes": "Barulho na suspensão",
    })


@pytest.fixture
def quote_form():
    """Cotação do exemplo: 200 em peças e 200 em mão de obra, descontos 10% / 5%."""
    return QuoteForm(
        estimated_delivery_days=3,
        estimated_start_date=date.today(),
        valid_until=date.today() + timedelta(days=30),
        service_location="Na oficina",
        items=[
            {"description": "Amortecedor", "quantity": 2, "unit_price": 100, "category": "PARTS"},
            {"description": "Troca", "quantity": 1, "unit_price": 200, "category": "LABOR"},
        ],
        parts_discount_percentage=10,
        labor_discount_percentage=5,
    )


@pytest.fixture
def client(db):
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    def _login(user: User, password: str = PASSWORD):
        return client.post("/login", data={"email": user.email, "password": password})

    return _login
