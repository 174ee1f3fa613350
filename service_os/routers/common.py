from fastapi import HTTPException, Request
from starlette import status
from starlette.responses import RedirectResponse

from service_os.authorization import DEFAULT_ROUTE
from service_os.exceptions import NotFound, PermissionDenied, ServiceOSError
from service_os.templating import flash


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=str(url), status_code=status.HTTP_303_SEE_OTHER)


def handle_failure(request: Request, error: ServiceOSError, fallback_url: str) -> RedirectResponse:
    """
    Destino de uma operação que falhou: sem permissão volta ao dashboard
    (sem mensagem), registro inexistente é 404, o resto vira toast.
    """
    if isinstance(error, PermissionDenied):
        return redirect(DEFAULT_ROUTE)
    if isinstance(error, NotFound):
        raise HTTPException(status_code=404, detail=error.message)
    flash(request, error.message, "error")
    return redirect(fallback_url)
