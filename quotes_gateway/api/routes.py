from fastapi import APIRouter, Request, Response

router = APIRouter()

_NO_CACHE = "no-cache"


def _split_symbols(query: str | None) -> list[str]:
    if query is None:
        return []
    return [s.strip() for s in query.split(',') if s.strip()]


@router.get('/quotes')
def get_quotes(request: Request, response: Response, q: str | None = None):
    response.headers["Cache-Control"] = _NO_CACHE
    symbols = _split_symbols(q)
    if not symbols:
        return []

    service = request.app.state.quote_service
    if len(symbols) > 1:
        quotes = service.get_quotes(symbols)
    else:
        quotes = [service.get_quote(symbols[0])]

    print(f"[API][quotes] q={q} count={len(quotes)}", flush=True)
    return [row.model_dump(mode='json', by_alias=True) for row in quotes]


@router.get('/company/{name}')
def get_companies(name: str, request: Request):
    service = request.app.state.quote_service
    companies = service.get_company_info(name)
    print(f"[API][company] name={name} count={len(companies)}", flush=True)
    return [row.model_dump() for row in companies]


@router.get('/metrics/breakers')
def breaker_metrics(request: Request):
    return request.app.state.quote_service.metrics()
