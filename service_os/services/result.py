from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from service_os.exceptions import ServiceOSError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Resposta dos serviços no formato {data, error}."""

    data: Optional[T] = None
    error: Optional[ServiceOSError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(func, *args, default: Any = None, **kwargs) -> Result:
    """
    Executa uma operação de serviço e devolve Result. Erros conhecidos
    (ServiceOSError) viram Result.error; qualquer outra exceção sobe.
    """
    try:
        return Result(data=func(*args, **kwargs))
    except ServiceOSError as e:
        return Result(data=default, error=e)
