import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, TEXT, Column, Date, DateTime, Float, ForeignKey, Integer, String,
)
from sqlalchemy.orm import relationship

from .database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# 1. Contas de identidade (e-mail + hash da senha)
class AuthUser(Base):
    __tablename__ = "auth_users"
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# 2. Perfis de usuário (o papel é definido na criação e nunca muda)
class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(String(36), primary_key=True, default=new_id)
    auth_id = Column(String(36), ForeignKey("auth_users.id"), unique=True, index=True)
    user_type = Column(String(20), nullable=False, index=True)
    login_number = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255))
    responsible_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50))
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Um perfil tem no máximo um registro de prefeitura OU de oficina
    city_hall = relationship(
        "CityHall", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )
    workshop = relationship(
        "Workshop", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )


# 3. Dados da prefeitura (descontos e alíquotas padrão)
class CityHall(Base):
    __tablename__ = "city_halls"
    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(String(36), ForeignKey("user_profiles.id"), unique=True, nullable=False)
    trade_name = Column(String(255))
    corporate_name = Column(String(255))
    cnpj = Column(String(20))
    state_registration = Column(String(50))
    city = Column(String(120))
    state = Column(String(2))
    zip_code = Column(String(10))
    address = Column(String(255))
    parts_discount_percentage = Column(Float, default=0.0, nullable=False)
    labor_discount_percentage = Column(Float, default=0.0, nullable=False)
    ir_labor = Column(Float, default=0.0, nullable=False)
    ir_parts = Column(Float, default=0.0, nullable=False)
    pis_labor = Column(Float, default=0.0, nullable=False)
    pis_parts = Column(Float, default=0.0, nullable=False)
    cofins_labor = Column(Float, default=0.0, nullable=False)
    cofins_parts = Column(Float, default=0.0, nullable=False)
    csll_labor = Column(Float, default=0.0, nullable=False)
    csll_parts = Column(Float, default=0.0, nullable=False)

    profile = relationship("UserProfile", back_populates="city_hall")


# 4. Dados da oficina (dados bancários e prefeituras credenciadas)
class Workshop(Base):
    __tablename__ = "workshops"
    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(String(36), ForeignKey("user_profiles.id"), unique=True, nullable=False)
    trade_name = Column(String(255))
    corporate_name = Column(String(255))
    cnpj = Column(String(20))
    state_registration = Column(String(50))
    city = Column(String(120))
    state = Column(String(2))
    zip_code = Column(String(10))
    address = Column(String(255))
    bank_name = Column(String(120))
    bank_branch = Column(String(20))
    bank_account = Column(String(30))
    accredited_city_halls = Column(JSON, default=list, nullable=False)

    profile = relationship("UserProfile", back_populates="workshop")


# 5. Ordens de serviço
class ServiceOrder(Base):
    __tablename__ = "service_orders"
    id = Column(String(36), primary_key=True, default=new_id)
    number = Column(String(8), unique=True, nullable=False, index=True)
    city_hall_id = Column(String(36), ForeignKey("user_profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)
    vehicle = Column(JSON, nullable=False)
    service_info = Column(JSON, nullable=False)
    sent_to_workshops = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    quotes = relationship("Quote", back_populates="service_order", order_by="Quote.created_at")


# 6. Cotações (itens em JSON, totais calculados em colunas)
class Quote(Base):
    __tablename__ = "quotes"
    id = Column(String(36), primary_key=True, default=new_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False, index=True)
    workshop_id = Column(String(36), ForeignKey("user_profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)
    quote_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=False)
    estimated_delivery_days = Column(Integer, nullable=False)
    estimated_start_date = Column(Date, nullable=False)
    service_location = Column(String(50), nullable=False)
    notes = Column(TEXT)
    items = Column(JSON, default=list, nullable=False)

    parts_discount_percentage = Column(Float, default=0.0, nullable=False)
    labor_discount_percentage = Column(Float, default=0.0, nullable=False)
    parts_subtotal = Column(Float, default=0.0, nullable=False)
    labor_subtotal = Column(Float, default=0.0, nullable=False)
    parts_discount_amount = Column(Float, default=0.0, nullable=False)
    labor_discount_amount = Column(Float, default=0.0, nullable=False)
    parts_total = Column(Float, default=0.0, nullable=False)
    labor_total = Column(Float, default=0.0, nullable=False)
    subtotal = Column(Float, default=0.0, nullable=False)
    total_discount = Column(Float, default=0.0, nullable=False)
    total = Column(Float, default=0.0, nullable=False)

    submitted_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    service_order = relationship("ServiceOrder", back_populates="quotes")
    workshop = relationship("UserProfile")


# 7. Histórico de ações sobre a ordem de serviço
class ServiceOrderHistory(Base):
    __tablename__ = "service_order_history"
    id = Column(String(36), primary_key=True, default=new_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    user_id = Column(String(36), ForeignKey("user_profiles.id"))
    user_role = Column(String(20), nullable=False)
    details = Column(TEXT)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
