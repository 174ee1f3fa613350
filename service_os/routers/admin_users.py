from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session as DBSession
from starlette import status

from service_os.authorization import ROLE_POLICIES
from service_os.database import get_db
from service_os.deps import get_current_user
from service_os.exceptions import ValidationError
from service_os.models.role import ROLE_LABELS, Role
from service_os.models.user import UserForm
from service_os.routers.common import handle_failure, redirect
from service_os.services.result import attempt
from service_os.services.user_directory import UserDirectory
from service_os.templating import flash, render

router = APIRouter(prefix="/admin/users", tags=["admin"])


def _user_values(user) -> dict:
    """Valores planos do formulário a partir do usuário gravado."""
    values = {
        "user_type": user.role.value,
        "login_number": user.login,
        "name": user.name,
        "responsible_email": user.email,
        "contact_phone": user.phone,
    }
    profile = user.city_hall or user.workshop
    if profile is not None:
        values.update(profile.model_dump())
        if user.workshop is not None:
            values["accredited_city_halls"] = ", ".join(user.workshop.accredited_city_halls)
    return values


def _form_page(request, actor, title, action, values, editing=False, errors=None, status_code=200):
    return render(
        request,
        "admin/user_form.html",
        {
            "title": title,
            "action": action,
            "values": values,
            "errors": errors or {},
            "editing": editing,
            "roles": ROLE_LABELS,
            # Campos de perfil exibidos conforme o papel escolhido
            "profile_fields": {role.value: policy.profile_fields for role, policy in ROLE_POLICIES.items()},
        },
        user=actor,
        status_code=status_code,
    )


# Rota 1: Listar Usuários (com filtro por papel)
@router.get("/", name="list_users")
def list_users(request: Request, role: str = "all", actor=Depends(get_current_user),
               db: DBSession = Depends(get_db)):
    directory = UserDirectory(db)
    if role != "all" and role not in Role.__members__:
        role = "all"
    users = attempt(directory.list_users, actor, role, default=[])
    stats = attempt(directory.user_stats, actor, default={})
    if users.error:
        flash(request, users.error.message, "error")
    return render(
        request,
        "admin/users.html",
        {
            "title": "Usuários",
            "users": users.data,
            "stats": stats.data,
            "roles": ROLE_LABELS,
            "role_filter": role,
            "load_error": users.error is not None,
        },
        user=actor,
    )


# Rota 2: Formulário de Novo Usuário
@router.get("/new", name="new_user_form")
def new_user_form(request: Request, actor=Depends(get_current_user)):
    return _form_page(request, actor, "Novo Usuário", router.url_path_for("create_user"), {})


# Rota 3: Processar Cadastro de Usuário
@router.post("/", name="create_user")
async def create_user(request: Request, actor=Depends(get_current_user), db: DBSession = Depends(get_db)):
    form_data = await request.form()
    values = dict(form_data)
    values.pop("password", None)
    try:
        form = UserForm.from_form(form_data)
    except PydanticValidationError as e:
        return _form_page(request, actor, "Novo Usuário", router.url_path_for("create_user"), values,
                          errors=ValidationError.from_pydantic(e).fields,
                          status_code=status.HTTP_400_BAD_REQUEST)

    result = attempt(UserDirectory(db).create_user, actor, form)
    if isinstance(result.error, ValidationError):
        return _form_page(request, actor, "Novo Usuário", router.url_path_for("create_user"), values,
                          errors=result.error.fields or {"form": result.error.message},
                          status_code=status.HTTP_400_BAD_REQUEST)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_users"))
    flash(request, f"Usuário {result.data.login} criado.")
    return redirect(router.url_path_for("list_users"))


# Rota 4: Formulário de Edição
@router.get("/{user_id}/edit", name="edit_user_form")
def edit_user_form(request: Request, user_id: str, actor=Depends(get_current_user),
                   db: DBSession = Depends(get_db)):
    result = attempt(UserDirectory(db).get_user, actor, user_id)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_users"))
    return _form_page(
        request, actor, f"Editar Usuário: {result.data.login}",
        router.url_path_for("update_user", user_id=user_id), _user_values(result.data), editing=True,
    )


# Rota 5: Processar Atualização (o papel não muda)
@router.post("/{user_id}/update", name="update_user")
async def update_user(request: Request, user_id: str, actor=Depends(get_current_user),
                      db: DBSession = Depends(get_db)):
    form_data = await request.form()
    values = dict(form_data)
    values.pop("password", None)
    action = router.url_path_for("update_user", user_id=user_id)
    try:
        form = UserForm.from_form(form_data)
    except PydanticValidationError as e:
        return _form_page(request, actor, "Editar Usuário", action, values, editing=True,
                          errors=ValidationError.from_pydantic(e).fields,
                          status_code=status.HTTP_400_BAD_REQUEST)

    result = attempt(UserDirectory(db).update_user, actor, user_id, form)
    if isinstance(result.error, ValidationError):
        return _form_page(request, actor, "Editar Usuário", action, values, editing=True,
                          errors=result.error.fields or {"form": result.error.message},
                          status_code=status.HTTP_400_BAD_REQUEST)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_users"))
    flash(request, f"Usuário {result.data.login} atualizado.")
    return redirect(router.url_path_for("list_users"))


# Rota 6: Excluir Usuário (definitivo)
@router.post("/{user_id}/delete", name="delete_user")
def delete_user(request: Request, user_id: str, actor=Depends(get_current_user),
                db: DBSession = Depends(get_db)):
    result = attempt(UserDirectory(db).delete_user, actor, user_id)
    if result.error:
        return handle_failure(request, result.error, router.url_path_for("list_users"))
    flash(request, "Usuário excluído.")
    return redirect(router.url_path_for("list_users"))
