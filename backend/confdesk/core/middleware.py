import logging
import time
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# === 结构化日志配置 ===
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("confdesk")

REQUEST_ID_HEADER = "X-Request-Id"


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """
    统一异常捕获 + 访问日志中间件

    中文注释:
    - 每个请求带上 request_id（沿用调用方传入的值，否则生成），写入日志与响应头。
    - 任何未被路由层映射的异常统一返回 500，绝不向调用方暴露堆栈/内部细节。
    """

    async def dispatch(self, request: Request, call_next):
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or uuid4().hex
        start_time = time.time()
        try:
            response = await call_next(request)
        except HTTPException as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail, "type": "http_exception"},
                headers={REQUEST_ID_HEADER: request_id},
            )
        except Exception as e:
            logger.error(
                f"Unhandled Exception request_id={request_id} path={request.url.path}: {e}",
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "type": "server_error",
                    "request_id": request_id,
                },
                headers={REQUEST_ID_HEADER: request_id},
            )

        process_time = time.time() - start_time
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"Method: {request.method} Path: {request.url.path} Status: {response.status_code} "
            f"Time: {process_time:.4f}s RequestId: {request_id}",
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
