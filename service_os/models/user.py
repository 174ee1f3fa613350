import re
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from service_os.authorization import role_policy

from .role import Role

# Percentuais de desconto e alíquotas sempre entre 0 e 100
Percentage = Annotated[float, Field(ge=0, le=100)]

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CityHallProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trade_name: Optional[str] = None
    corporate_name: Optional[str] = None
    cnpj: Optional[str] = None
    state_registration: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    address: Optional[str] = None
    parts_discount_percentage: Percentage = 0.0
    labor_discount_percentage: Percentage = 0.0
    ir_labor: Percentage = 0.0
    ir_parts: Percentage = 0.0
    pis_labor: Percentage = 0.0
    pis_parts: Percentage = 0.0
    cofins_labor: Percentage = 0.0
    cofins_parts: Percentage = 0.0
    csll_labor: Percentage = 0.0
    csll_parts: Percentage = 0.0


class WorkshopProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trade_name: Optional[str] = None
    corporate_name: Optional[str] = None
    cnpj: Optional[str] = None
    state_registration: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    address: Optional[str] = None
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account: Optional[str] = None
    accredited_city_halls: list[str] = Field(default_factory=list)


class User(BaseModel):
    """Usuário autenticado, já com o perfil específico do seu papel."""

    id: str
    role: Role
    login: str
    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    city_hall: Optional[CityHallProfile] = None
    workshop: Optional[WorkshopProfile] = None

    @classmethod
    def from_record(cls, profile) -> "User":
        role = Role(profile.user_type)
        return cls(
            id=profile.id,
            role=role,
            login=profile.login_number,
            name=profile.name,
            email=profile.responsible_email,
            phone=profile.contact_phone,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
            city_hall=(
                CityHallProfile.model_validate(profile.city_hall)
                if role == Role.CITY_HALL and profile.city_hall else None
            ),
            workshop=(
                WorkshopProfile.model_validate(profile.workshop)
                if role == Role.WORKSHOP and profile.workshop else None
            ),
        )

    @property
    def display_name(self) -> str:
        if self.city_hall and self.city_hall.trade_name:
            return self.city_hall.trade_name
        if self.workshop and self.workshop.trade_name:
            return self.workshop.trade_name
        return self.name or self.login


class UserForm(BaseModel):
    """Formulário de criação/edição de usuário pelo administrador geral."""

    user_type: Role
    login_number: str = Field(..., min_length=3)
    name: Optional[str] = None
    responsible_email: str
    contact_phone: Optional[str] = None
    # Obrigatória apenas na criação (validado no serviço)
    password: Optional[str] = Field(None, min_length=4)
    city_hall: Optional[CityHallProfile] = None
    workshop: Optional[WorkshopProfile] = None

    @field_validator("responsible_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("E-mail inválido")
        return value

    @classmethod
    def from_form(cls, form) -> "UserForm":
        """Monta o modelo a partir dos campos planos do formulário HTML."""
        data = {key: value for key, value in form.items() if value not in ("", None)}
        try:
            role = Role(data.get("user_type"))
        except ValueError:
            role = None

        payload = {
            "user_type": data.get("user_type"),
            "login_number": data.get("login_number", ""),
            "name": data.get("name"),
            "responsible_email": data.get("responsible_email", ""),
            "contact_phone": data.get("contact_phone"),
            "password": data.get("password"),
        }
        if role in (Role.CITY_HALL, Role.WORKSHOP):
            # Só os campos visíveis para o papel entram no sub-perfil
            fields = role_policy(role).profile_fields
            section = {name: data[name] for name in fields if name in data}
            if role == Role.CITY_HALL:
                payload["city_hall"] = section
            else:
                if "accredited_city_halls" in section:
                    section["accredited_city_halls"] = [
                        item.strip()
                        for item in str(section["accredited_city_halls"]).split(",")
                        if item.strip()
                    ]
                payload["workshop"] = section
        return cls.model_validate(payload)
