import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from ctiledger import containers
from ctiledger.config import settings
from ctiledger.core.exception_handlers import (
    handle_base_api_exception,
    handle_http_exception,
    handle_service_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from ctiledger.core.exceptions import BaseAPIException, ServiceException
from ctiledger.core.logging_middleware import LoggingMiddleware
from ctiledger.database.connection import engine
from ctiledger.logging_config import setup_logging
from ctiledger.models.ledger import Base
from ctiledger.routers import (
    document_router,
    health_router,
    incentive_router,
    nonce_router,
    point_router,
    statistics_router,
)

load_dotenv("ctiledger/.env")
setup_logging(settings.LOG_LEVEL, environment=settings.ENVIRONMENT, sql_echo=settings.DEBUG)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(ServiceException, handle_service_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health_router.router)
    app.include_router(nonce_router.router, prefix=settings.API_V1_STR)
    app.include_router(point_router.router, prefix=settings.API_V1_STR)
    app.include_router(document_router.router, prefix=settings.API_V1_STR)
    app.include_router(incentive_router.router, prefix=settings.API_V1_STR)
    app.include_router(statistics_router.router, prefix=settings.API_V1_STR)

    @app.get("/")
    def hello() -> dict:
        return {"message": settings.APP_NAME}

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
