"""
Nonce API 라우터

- POST /nonces: nonce 발급 (서명된 요청 전에 1회 호출)
- POST /nonces/sweep: 만료된 nonce 정리 (운영용)
"""

import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends

from ctiledger.config import settings
from ctiledger.containers import Container
from ctiledger.schemas.common import BaseResponse
from ctiledger.schemas.nonce import NonceIssueRequest, NonceIssueResponse, NonceSweepResponse
from ctiledger.services.nonce_service import NonceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nonces", tags=["nonces"])


@router.post("", response_model=BaseResponse)
@inject
async def issue_nonce(
    request: NonceIssueRequest,
    nonce_service: NonceService = Depends(Provide[Container.services.nonce_service]),
) -> BaseResponse:
    """nonce 발급

    Returns:
        BaseResponse: {"nonce": ..., "expires_in_seconds": ...}
    """
    nonce = nonce_service.issue_nonce(request.user_id, request.tx_signature)
    return BaseResponse(
        success=True,
        data=NonceIssueResponse(
            nonce=nonce,
            expires_in_seconds=settings.NONCE_TTL_MINUTES * 60,
        ).model_dump(),
    )


@router.post("/sweep", response_model=BaseResponse)
@inject
async def sweep_expired_nonces(
    nonce_service: NonceService = Depends(Provide[Container.services.nonce_service]),
) -> BaseResponse:
    deleted = nonce_service.sweep_expired_nonces()
    return BaseResponse(success=True, data=NonceSweepResponse(deleted_count=deleted).model_dump())
