"""Perfis de usuário: resolução após o login e administração de contas."""

import logging
from collections import Counter
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from service_os.authorization import require_operation
from service_os.database_models import CityHall, UserProfile, Workshop
from service_os.exceptions import ValidationError
from service_os.identity import IdentityProvider
from service_os.models.role import Role
from service_os.models.user import User, UserForm
from service_os.storage import Storage

logger = logging.getLogger(__name__)

# Papel atribuído ao perfil criado automaticamente no primeiro login
DEFAULT_ROLE = Role.QUERY_ADMIN


class UserDirectory:
    def __init__(self, db: DBSession):
        self.db = db
        self.storage = Storage(db)

    # --- Resolução de identidade ---

    def get_profile_by_auth_id(self, auth_id: str) -> Optional[UserProfile]:
        profiles = self.storage.find("user_profiles", auth_id=auth_id)
        return profiles[0] if profiles else None

    def create_default_profile(self, auth_id: str, email: str) -> UserProfile:
        local_part = email.split("@")[0] or "user"
        login = local_part
        suffix = 1
        while self.storage.find("user_profiles", login_number=login):
            suffix += 1
            login = f"{local_part}{suffix}"

        profile = self.storage.insert("user_profiles", {
            "auth_id": auth_id,
            "user_type": DEFAULT_ROLE.value,
            "login_number": login,
            "name": local_part,
            "responsible_email": email,
            "contact_phone": "",
        })
        logger.info("Perfil padrão criado para %s (%s)", email, DEFAULT_ROLE.value)
        return profile

    def resolve_user(self, auth_id: str, email: str) -> User:
        profile = self.get_profile_by_auth_id(auth_id)
        if profile is None:
            profile = self.create_default_profile(auth_id, email)
        return User.from_record(profile)

    # --- Administração (apenas GENERAL_ADMIN) ---

    def list_users(self, actor: User, role: Optional[str] = None) -> list[User]:
        require_operation(actor, "manage_users")
        filters = {}
        if role and role != "all":
            filters["user_type"] = Role(role).value
        profiles = self.storage.find("user_profiles", order_by="-created_at", **filters)
        return [User.from_record(profile) for profile in profiles]

    def get_user(self, actor: User, user_id: str) -> User:
        require_operation(actor, "manage_users")
        return User.from_record(self.storage.get("user_profiles", user_id))

    def list_city_halls(self) -> list[User]:
        profiles = self.storage.find("user_profiles", order_by="name", user_type=Role.CITY_HALL.value)
        return [User.from_record(profile) for profile in profiles]

    def list_workshops(self) -> list[User]:
        profiles = self.storage.find("user_profiles", order_by="name", user_type=Role.WORKSHOP.value)
        return [User.from_record(profile) for profile in profiles]

    def create_user(self, actor: User, form: UserForm) -> User:
        require_operation(actor, "manage_users")
        if not form.password:
            raise ValidationError(fields={"password": "Senha é obrigatória"})
        if self.storage.find("user_profiles", login_number=form.login_number):
            raise ValidationError(fields={"login_number": "Login já cadastrado"})

        identity = IdentityProvider(self.db, {})
        with self.storage.transaction():
            account = identity.create_account(form.responsible_email, form.password)
            profile = UserProfile(
                auth_id=account.id,
                user_type=form.user_type.value,
                login_number=form.login_number,
                name=form.name,
                responsible_email=form.responsible_email,
                contact_phone=form.contact_phone,
            )
            self._apply_role_profile(profile, form)
            self.db.add(profile)
            self.db.flush()

        logger.info("Usuário %s (%s) criado por %s", profile.login_number, profile.user_type, actor.login)
        return User.from_record(profile)

    def update_user(self, actor: User, user_id: str, form: UserForm) -> User:
        require_operation(actor, "manage_users")
        profile = self.storage.get("user_profiles", user_id)
        if form.user_type.value != profile.user_type:
            raise ValidationError(fields={"user_type": "O papel do usuário não pode ser alterado"})
        duplicates = [
            other for other in self.storage.find("user_profiles", login_number=form.login_number)
            if other.id != profile.id
        ]
        if duplicates:
            raise ValidationError(fields={"login_number": "Login já cadastrado"})

        identity = IdentityProvider(self.db, {})
        with self.storage.transaction():
            if profile.auth_id:
                identity.update_account(profile.auth_id, email=form.responsible_email, password=form.password)
            profile.login_number = form.login_number
            profile.name = form.name
            profile.responsible_email = form.responsible_email
            profile.contact_phone = form.contact_phone
            self._apply_role_profile(profile, form)
            self.db.flush()

        logger.info("Usuário %s atualizado por %s", profile.login_number, actor.login)
        return User.from_record(profile)

    def delete_user(self, actor: User, user_id: str) -> None:
        require_operation(actor, "manage_users")
        if user_id == actor.id:
            raise ValidationError("Você não pode excluir o próprio usuário.")
        profile = self.storage.get("user_profiles", user_id)
        if self.storage.find("service_orders", city_hall_id=user_id) or self.storage.find("quotes", workshop_id=user_id):
            raise ValidationError("O usuário possui ordens de serviço ou cotações e não pode ser excluído.")

        identity = IdentityProvider(self.db, {})
        login = profile.login_number
        with self.storage.transaction():
            auth_id = profile.auth_id
            # city_halls / workshops saem junto pelo cascade do relacionamento
            self.storage.delete("user_profiles", profile.id)
            if auth_id:
                identity.delete_account(auth_id)
        logger.info("Usuário %s excluído por %s", login, actor.login)

    def user_stats(self, actor: User) -> dict:
        require_operation(actor, "manage_users")
        counts = Counter(profile.user_type for profile in self.storage.find("user_profiles"))
        return {
            "total": sum(counts.values()),
            "city_halls": counts[Role.CITY_HALL.value],
            "workshops": counts[Role.WORKSHOP.value],
            "query_admins": counts[Role.QUERY_ADMIN.value],
            "general_admins": counts[Role.GENERAL_ADMIN.value],
        }

    @staticmethod
    def _apply_role_profile(profile: UserProfile, form: UserForm) -> None:
        if form.user_type == Role.CITY_HALL:
            data = (form.city_hall.model_dump() if form.city_hall else {})
            if profile.city_hall is None:
                profile.city_hall = CityHall(**data)
            else:
                for name, value in data.items():
                    setattr(profile.city_hall, name, value)
        elif form.user_type == Role.WORKSHOP:
            data = (form.workshop.model_dump() if form.workshop else {})
            if profile.workshop is None:
                profile.workshop = Workshop(**data)
            else:
                for name, value in data.items():
                    setattr(profile.workshop, name, value)
