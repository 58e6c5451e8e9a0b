"""FastAPI 应用入口点。"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from market_api.api.router import api_router
from market_api.core.config import Settings, get_settings
from market_api.db.session import Store
from market_api.exceptions import register_exception_handlers
from market_api.middlewares import register_middlewares
from market_api.services.bootstrap import seed_master_admin

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """按配置初始化根日志。"""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Settings | None = None, store: Store | None = None) -> FastAPI:
    """创建并配置 FastAPI 应用实例。

    `store` 为空时按配置创建；测试可注入指向内存库的实例。
    """
    settings = settings or get_settings()
    setup_logging(settings)
    app_store = store or Store.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.db_auto_create_schema:
            app_store.create_schema()
        seed_master_admin(app_store, settings)
        logger.info("application started env=%s", settings.app_env)
        yield
        app_store.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "多商户交易平台统一认证接口。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`。\n"
            "通过 `Authorization: Bearer <session token>` 或会话 Cookie 进行认证。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、登录、会话校验与登出。"},
            {"name": "admin", "description": "管理员账号治理、商家审核与会话运维。"},
        ],
    )
    app.state.store = app_store
    app.state.settings = settings

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
