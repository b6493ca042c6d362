from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formbuilder.config import settings
from formbuilder.database import client, store
from formbuilder.errors import FormBuilderError, PersistenceError
from formbuilder.logging_config import get_logger, setup_logging
from formbuilder.routers.forms import router as forms_router
from formbuilder.routers.health import router as health_router
from formbuilder.routers.submissions import router as submissions_router

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Serving without the database is pointless; fail startup instead
    try:
        await store.ping()
        await store.ensure_indexes()
    except PersistenceError as e:
        logger.critical(f"Failed to connect to MongoDB: {e.details}")
        raise
    logger.info(f"Connected to MongoDB database {settings.DB_NAME}")
    yield
    client.close()


app = FastAPI(title="Form Builder Backend (FastAPI + Mongo)", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(forms_router)
app.include_router(submissions_router)


@app.exception_handler(FormBuilderError)
async def form_builder_error_handler(request: Request, exc: FormBuilderError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are client errors (400), not 422."""
    errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
    message = "Invalid request"
    for err in exc.errors():
        if tuple(err["loc"]) == ("body", "fields") and err["type"] == "list_type":
            message = "Fields must be an array"
            break
    logger.warning(f"{request.method} {request.url.path} -> 400: {message} {errors}")
    return JSONResponse(status_code=400, content={"detail": message, "errors": errors})


if __name__ == "__main__":
    logger.info(f"Starting form builder API on 0.0.0.0:{settings.PORT}")
    try:
        uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise SystemExit(1)
