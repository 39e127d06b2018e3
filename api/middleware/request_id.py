"""
Request ID 中间件
生成或透传追踪ID，通过 contextvars 传递给日志系统，并记录访问日志
"""
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog

from core.logging_config import get_logger


logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    功能：
    1. 从请求头获取或生成新的request_id
    2. 绑定到structlog上下文，webhook 与会话接口的日志都带上同一个ID
    3. 在响应头中返回request_id，并记录耗时
    """

    HEADER_NAME = "X-Request-ID"
    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id

        if request.url.path not in self.SKIP_PATHS:
            logger.info(
                "http_request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        return response
