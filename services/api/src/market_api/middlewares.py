"""应用中间件注册。"""

from time import perf_counter
import uuid

from fastapi import FastAPI, Request

# 返回会话令牌或身份信息的路径前缀，响应禁止被缓存。
_NO_STORE_PATH_MARKERS = ("/auth/", "/admin/")


async def request_id_middleware(request: Request, call_next):
    """注入请求追踪 ID，并通过响应头返回。"""
    request.state.request_id = str(uuid.uuid4())
    request.state.request_started_at = perf_counter()
    response = await call_next(request)
    response.headers["X-Request-Id"] = request.state.request_id
    elapsed = perf_counter() - request.state.request_started_at
    response.headers["X-Process-Time-Ms"] = str(round(elapsed * 1000, 2))
    if any(marker in request.url.path for marker in _NO_STORE_PATH_MARKERS):
        response.headers["Cache-Control"] = "no-store"
    return response


def register_middlewares(app: FastAPI) -> None:
    """集中注册中间件。"""
    app.middleware("http")(request_id_middleware)
