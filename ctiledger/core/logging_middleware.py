import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("ctiledger")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 - 4xx는 warning, 5xx는 error 레벨

    요청마다 request id 를 붙이고(클라이언트가 보낸 값이 있으면 재사용) 응답 헤더로
    돌려준다. 서명된 원장 요청을 로그에서 추적할 때 사용한다.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        extra = {"request_id": request_id}

        method = request.method
        path = request.url.path
        client = request.client.host if request.client else "-"

        logger.info(f"[Request] {method} {path} from {client}", extra=extra)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[Unhandled Error] {method} {path} from {client}", extra=extra)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        summary = f"[Response] {method} {path} -> {response.status_code} in {duration_ms:.1f}ms ({request_id})"
        if response.status_code >= 500:
            logger.error(summary, extra=extra)
        elif response.status_code >= 400:
            logger.warning(summary, extra=extra)
        else:
            logger.info(summary, extra=extra)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
