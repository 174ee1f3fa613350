"""
Erros da aplicação.

Erros de autenticação, de workflow, de validação e de armazenamento são
tipos distintos para que as rotas decidam como apresentá-los (toast,
redirecionamento ou página de erro).
"""


class ServiceOSError(Exception):
    """Base de todos os erros conhecidos da aplicação."""

    message = "Erro inesperado."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class AuthError(ServiceOSError):
    message = "E-mail ou senha inválidos."


class IdentityResolutionError(AuthError):
    message = "Não foi possível carregar o perfil do usuário."


class PermissionDenied(ServiceOSError):
    message = "Você não tem permissão para esta operação."


class InvalidTransition(ServiceOSError):
    message = "Transição de status inválida."

    def __init__(self, message: str | None = None, current=None, event=None):
        super().__init__(message)
        self.current = current
        self.event = event


class DuplicateQuote(InvalidTransition):
    message = "Esta oficina já possui uma cotação ativa para esta ordem de serviço."


class ValidationError(ServiceOSError):
    message = "Dados inválidos."

    def __init__(self, message: str | None = None, fields: dict | None = None):
        super().__init__(message)
        self.fields = fields or {}

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Converte um pydantic.ValidationError em erros por campo."""
        fields = {}
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]) or "form"
            fields[name] = error["msg"]
        return cls(fields=fields)


class StorageError(ServiceOSError):
    message = "Erro ao acessar o banco de dados."


class NotFound(StorageError):
    message = "Registro não encontrado."
