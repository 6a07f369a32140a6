import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from lastmile.core.config import settings
from lastmile.database import Base, check_database_connection, engine
from lastmile.models import account, address, delivery  # noqa: F401  (register tables)
from lastmile.routes.addresses import router as addresses_router
from lastmile.routes.company import router as company_router
from lastmile.routes.driver import router as driver_router
from lastmile.services.errors import DeliveryFlowError

logging.basicConfig(
    level=(settings.LOG_LEVEL or "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

env_lower = (settings.ENV or "").strip().lower()
session_https_only = env_lower in {"production", "prod"}

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    same_site="lax",
    https_only=session_https_only,
    domain=(settings.SESSION_COOKIE_DOMAIN or None),
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(addresses_router)
app.include_router(driver_router)
app.include_router(company_router)


@app.exception_handler(DeliveryFlowError)
async def delivery_flow_error_handler(request: Request, exc: DeliveryFlowError) -> JSONResponse:
    logger.info("request rejected path=%s status=%s code=%s", request.url.path, exc.status_code, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append(
            {
                "field": ".".join(location),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
        )
    logger.info("validation failed path=%s errors=%d", request.url.path, len(errors))
    return JSONResponse(
        status_code=400,
        content={"status": "error", "message": "validation_error", "errors": errors},
    )


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("startup: %s ready env=%s", settings.APP_NAME, settings.ENV)


@app.get("/health")
def health() -> dict[str, str]:
    database = "connected"
    status_value = "healthy"
    try:
        check_database_connection()
    except Exception:
        logger.exception("health: database check failed")
        database = "disconnected"
        status_value = "degraded"

    return {
        "status": status_value,
        "database": database,
        "service": settings.APP_NAME,
        "environment": settings.ENV,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }
