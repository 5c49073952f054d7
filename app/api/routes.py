from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, Optional, Type
import json
import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.models import Envelope, request_models
from app.config.database import DatabasePool
from app.services.errors import ResourceError, StorageError
from app.services.resource_repository import ResourceRepository
from app.services.resource_schema import RESOURCES, ResourceSchema

logger = logging.getLogger(__name__)

SERVICE_NAME = "resource-api"
SERVICE_VERSION = "1.0.0"

ROUTE_NOT_FOUND = "Route not found!!"
FALLBACK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _envelope(status_code: int, message: str, data=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Envelope(data=data, message=message).model_dump(mode="json"),
    )


async def read_body(request: Request) -> Any:
    """
    Decode a request body sent either as JSON or as a form.
    An empty body decodes to an empty object.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise RequestValidationError([
            {"type": "json_invalid", "loc": ("body",), "msg": f"JSON decode error: {e}", "input": {}}
        ])


def validate_body(model: Type[BaseModel], data: Any) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body",) + tuple(error["loc"])} for error in e.errors()]
        )


def build_resource_router(schema: ResourceSchema) -> APIRouter:
    """
    Register list/get/create/update/delete for one resource descriptor.
    Mount the router under /<schema.name>.
    """
    router = APIRouter(tags=[schema.name])
    create_body, update_body = request_models(schema)

    def repository(request: Request) -> ResourceRepository:
        return request.app.state.repositories[schema.name]

    async def create_payload(request: Request) -> BaseModel:
        return validate_body(create_body, await read_body(request))

    async def update_payload(request: Request) -> BaseModel:
        return validate_body(update_body, await read_body(request))

    @router.get("/", response_model=Envelope)
    @router.get("", response_model=Envelope, include_in_schema=False)
    def list_records(request: Request):
        """List every record of the resource."""
        records = repository(request).list_all()
        return Envelope(data=records, message=f"All {schema.plural} successfully retrieved.")

    @router.get("/{record_id}", response_model=Envelope)
    def get_record(record_id: int, request: Request):
        """Fetch one record by id. Missing ids answer 404."""
        record = repository(request).get(record_id)
        return Envelope(data=record, message=f"{schema.label} {record['name']} successfully retrieved.")

    @router.post("/", response_model=Envelope, status_code=201)
    @router.post("", response_model=Envelope, status_code=201, include_in_schema=False)
    def create_record(request: Request, payload: BaseModel = Depends(create_payload)):
        """Insert a record; the id is assigned by the database. Accepts JSON or form bodies."""
        record = repository(request).create(payload.model_dump())
        return Envelope(data=record, message=f"{schema.label} {record['name']} successfully added.")

    @router.put("/{record_id}", response_model=Envelope)
    def update_record(record_id: int, request: Request, payload: BaseModel = Depends(update_payload)):
        """
        Overwrite exactly the fields present in the body; every other field
        keeps its stored value.
        """
        record = repository(request).update(record_id, payload.model_dump(exclude_unset=True))
        return Envelope(data=record, message=f"{schema.label} {record['name']} has been successfully updated.")

    @router.delete("/{record_id}", response_model=Envelope)
    def delete_record(record_id: int, request: Request):
        """Delete a record. Succeeds whether or not the id existed."""
        repository(request).delete(record_id)
        return Envelope(data=None, message=f"{schema.label} with id: {record_id} successfully deleted.")

    return router


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ResourceError)
    async def resource_error_handler(request: Request, exc: ResourceError):
        if isinstance(exc, StorageError):
            logger.error(f"Storage error on {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        else:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            details.append(f"{location}: {error.get('msg')}")
        message = "; ".join(details) or "Invalid request"
        logger.warning(f"Invalid request {request.method} {request.url.path}: {message}")
        return _envelope(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Methods outside FALLBACK_METHODS still get the fallback envelope
        if exc.status_code in (404, 405):
            return _envelope(400, ROUTE_NOT_FOUND)
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return _envelope(500, "Internal server error")


def create_app(
    db: Optional[DatabasePool] = None,
    repositories: Optional[Dict[str, ResourceRepository]] = None,
    resources: Iterable[ResourceSchema] = RESOURCES,
) -> FastAPI:
    """
    Build the API.

    Pass `repositories` to bypass the database entirely (tests do this).
    Otherwise one repository per resource is built over `db`, and the pool
    is opened at startup and closed at shutdown.
    """
    resources = tuple(resources)

    if repositories is None:
        db = db if db is not None else DatabasePool()
        repositories = {schema.name: ResourceRepository(db, schema) for schema in resources}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if db is not None:
            db.initialize()
        try:
            yield
        finally:
            if db is not None:
                db.close_all()

    app = FastAPI(
        title="Resource CRUD API",
        description="CRUD endpoints for fashion and pokemon records",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.repositories = repositories
    app.state.db = db

    @app.get("/")
    def root():
        """Root endpoint - API info"""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "resources": [schema.name for schema in resources],
        }

    @app.get("/health")
    def health():
        """Health check endpoint"""
        return {"status": "ok", "service": SERVICE_NAME}

    for schema in resources:
        app.include_router(build_resource_router(schema), prefix=f"/{schema.name}")

    _register_exception_handlers(app)

    # Registered last so it only catches what nothing else matched
    @app.api_route("/{path:path}", methods=FALLBACK_METHODS, include_in_schema=False)
    def route_not_found(path: str):
        return _envelope(400, ROUTE_NOT_FOUND)

    return app


app = create_app()


def get_app() -> FastAPI:
    return app
