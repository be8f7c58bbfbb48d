import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Type

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from config import Settings, setup_logging
from database import ProductStore
from exceptions import NotFoundError, PersistenceError
from schemas import (
    CheckedProductIn,
    FieldError,
    ProductIn,
    ProductOut,
    doc_to_dict,
    format_validation_errors,
)

logger = logging.getLogger(__name__)

API_DESCRIPTION = "Produkt API Dokumentation"


def not_found() -> PlainTextResponse:
    return PlainTextResponse("Product not found", status_code=status.HTTP_404_NOT_FOUND)


def server_error(message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_store(request: Request) -> ProductStore:
    return request.app.state.store


def to_product(doc: dict) -> ProductOut:
    """Validate a stored document for output.

    Documents written outside this API may lack fields; those surface as a
    PersistenceError so routes answer with their usual 500 message.
    """
    try:
        return ProductOut.model_validate(doc_to_dict(doc))
    except ValidationError:
        logger.exception("Stored product %s does not match the product schema", doc.get("_id"))
        raise PersistenceError("reading", doc.get("_id")) from None


# ---------- Product Routes ----------

def create_product_router(payload_model: Type[ProductIn]) -> APIRouter:
    """Build the /products routes.

    ``payload_model`` is the schema POST and PUT bodies are validated
    against; FastAPI reports every failing field at once and the app-level
    handler turns them into a 400 response before any route runs.
    """
    router = APIRouter(prefix="/products", tags=["Produkte"])
    error_responses = {
        404: {"description": "Produkt wurde nicht gefunden"},
        500: {"description": "Ein Fehler ist aufgetreten"},
    }
    invalid_response = {400: {"description": "Ungültige Eingabe", "model": List[FieldError]}}

    @router.get("", response_model=List[ProductOut], summary="Gibt alle Produkte zurück")
    def list_products(request: Request) -> Any:
        try:
            return [to_product(d) for d in get_store(request).list()]
        except PersistenceError:
            return server_error("Error querying products")

    @router.get(
        "/{product_id}",
        response_model=ProductOut,
        summary="Gibt ein bestimmtes Produkt anhand der mitgegebenen ID aus",
        responses=error_responses,
    )
    def get_product(product_id: str, request: Request) -> Any:
        try:
            doc = get_store(request).get_by_id(product_id)
            if doc is None:
                return not_found()
            return to_product(doc)
        except NotFoundError:
            return not_found()
        except PersistenceError:
            return server_error("Error querying product")

    @router.post(
        "",
        response_model=ProductOut,
        status_code=status.HTTP_201_CREATED,
        summary="Erstellt ein neues Produkt",
        responses={**invalid_response, 500: error_responses[500]},
    )
    def create_product(product: payload_model, request: Request) -> Any:
        try:
            return to_product(get_store(request).insert(product.model_dump()))
        except PersistenceError:
            return server_error("Error inserting product")

    @router.put(
        "/{product_id}",
        response_model=ProductOut,
        summary="Aktualisiert ein bestehendes Produkt",
        responses={**invalid_response, **error_responses},
    )
    def update_product(product_id: str, product: payload_model, request: Request) -> Any:
        try:
            doc = get_store(request).replace(product_id, product.model_dump())
            if doc is None:
                return not_found()
            return to_product(doc)
        except NotFoundError:
            return not_found()
        except PersistenceError:
            return server_error("Error updating product")

    @router.delete(
        "/{product_id}",
        response_model=ProductOut,
        summary="Löscht ein Produkt",
        responses=error_responses,
    )
    def delete_product(product_id: str, request: Request) -> Any:
        try:
            doc = get_store(request).delete(product_id)
            if doc is None:
                return not_found()
            return to_product(doc)
        except NotFoundError:
            return not_found()
        except PersistenceError:
            return server_error("Error deleting product")

    return router


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_validation_errors(exc.errors())
    logger.info("Rejected %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=errors)


# ---------- App ----------

def create_app(settings: Optional[Settings] = None, store: Optional[ProductStore] = None) -> FastAPI:
    """Create the product API.

    The store is connected when the app starts serving and closed on
    shutdown; if the connection fails, startup fails with it.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    if store is None:
        store = ProductStore(
            settings.mongo_uri,
            settings.mongo_db,
            settings.mongo_collection,
            server_selection_timeout_ms=settings.mongo_timeout_ms,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.connect()
        logger.info("Server listening on port %s", settings.port)
        try:
            yield
        finally:
            app.state.store.close()

    docs = settings.extended_api
    app = FastAPI(
        title="Produkt API",
        version="1.0.0",
        description=API_DESCRIPTION,
        docs_url="/api-docs" if docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    payload_model = CheckedProductIn if settings.extended_api else ProductIn
    app.include_router(create_product_router(payload_model))
    return app


# Built at import time for ``uvicorn main:app``; nothing connects until startup.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
