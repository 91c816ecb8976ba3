from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quotes_gateway.api.routes import router
from quotes_gateway.config.settings import get_settings
from quotes_gateway.errors import SymbolNotFoundError
from quotes_gateway.services.quote_service import build_quote_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        app.state.quote_service.close()
        print("[API][shutdown] quote_service=closed", flush=True)


app = FastAPI(title="Market Quotes Gateway", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")

# every setting has a default, so importing the app needs no environment
app.state.quote_service = build_quote_service(get_settings())


def _error_response(exc: Exception) -> JSONResponse:
    print(f"[API][error] type={type(exc).__name__} message={exc}", flush=True)
    return JSONResponse(status_code=500, content={"detail": f"ERROR: {exc}"})


@app.exception_handler(SymbolNotFoundError)
async def symbol_not_found_handler(request: Request, exc: SymbolNotFoundError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(exc)
