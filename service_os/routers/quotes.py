from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session as DBSession

from service_os.database import get_db
from service_os.deps import get_current_user
from service_os.routers.common import handle_failure, redirect
from service_os.services.quotes import QuoteService
from service_os.services.result import attempt
from service_os.templating import flash, render

router = APIRouter(tags=["quotes"])


@router.get("/my-quotes", name="my_quotes")
def my_quotes(request: Request, user=Depends(get_current_user), db: DBSession = Depends(get_db)):
    """Cotações da oficina logada (para os demais papéis a lista fica vazia)."""
    result = attempt(QuoteService(db).list_workshop_quotes, user, default=[])
    if result.error:
        flash(request, result.error.message, "error")
    return render(
        request,
        "quotes/my_quotes.html",
        {"title": "Minhas Cotações", "quotes": result.data, "load_error": result.error is not None},
        user=user,
    )


# Ações sobre uma cotação: (nome da rota, método do serviço, mensagem de sucesso)
QUOTE_ACTIONS = {
    "submit": ("submit_quote", "Cotação enviada."),
    "cancel": ("cancel_quote", "Cotação cancelada."),
    "accept": ("accept_quote", "Orçamento aceito; as demais cotações foram encerradas."),
    "reject": ("reject_quote", "Orçamento rejeitado."),
}


def _quote_action(action: str):
    method_name, success_message = QUOTE_ACTIONS[action]

    def endpoint(request: Request, quote_id: str, user=Depends(get_current_user),
                 db: DBSession = Depends(get_db)):
        service = QuoteService(db)
        found = attempt(service.get_quote, quote_id)
        if found.error:
            return handle_failure(request, found.error, "/my-quotes")
        back_url = f"/service-orders/{found.data.service_order_id}/quotes"

        result = attempt(getattr(service, method_name), user, quote_id)
        if result.error:
            return handle_failure(request, result.error, back_url)
        flash(request, success_message)
        return redirect(back_url)

    endpoint.__name__ = method_name
    return endpoint


for _action in QUOTE_ACTIONS:
    router.add_api_route(
        f"/quotes/{{quote_id}}/{_action}",
        _quote_action(_action),
        methods=["POST"],
        name=QUOTE_ACTIONS[_action][0],
    )
