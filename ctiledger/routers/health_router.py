import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ctiledger.config import settings
from ctiledger.database.connection import engine
from ctiledger.schemas.health import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def check_ledger_store() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Ledger store health check failed: {str(e)}")
        return False


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint.

    원장 저장소에 연결할 수 없으면 200 으로 degraded 상태를 돌려준다.
    """
    if check_ledger_store():
        return HealthCheckResponse(environment=settings.ENVIRONMENT)
    return HealthCheckResponse(
        status="degraded",
        system_operational=False,
        ledger_store="unavailable",
        environment=settings.ENVIRONMENT,
    )
