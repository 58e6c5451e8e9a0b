"""数据库会话管理。

`Store` 是认证核心唯一依赖的存储适配器：
1. `execute` 执行参数化语句（独立短事务）。
2. `transaction` 在单个事务内运行回调，正常返回提交，抛错回滚。
3. 无论成功失败，连接都会归还连接池。

进程内由应用工厂显式创建一次并注入，测试可自行构造内存库实例。
"""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from sqlalchemy import Engine, Executable, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from market_api.core.config import Settings
from market_api.db.base import Base

T = TypeVar("T")


def build_engine(settings: Settings) -> Engine:
    """按配置构造数据库引擎，开启连接预检查以减少僵尸连接影响。"""
    if settings.is_sqlite:
        # 内存库需要单连接共享，否则每个连接看到的是不同数据库。
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in settings.database_url:
            kwargs["poolclass"] = StaticPool
        return create_engine(settings.database_url, future=True, **kwargs)

    kwargs = {
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": settings.db_connect_timeout_seconds},
    }
    if settings.db_pool_size is not None:
        kwargs["pool_size"] = settings.db_pool_size
    return create_engine(settings.database_url, future=True, **kwargs)


class Store:
    """关系库存储适配器。"""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        # 统一会话工厂，每次事务获取短生命周期会话。
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
            class_=Session,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        return cls(build_engine(settings))

    def execute(self, statement: Executable, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """执行参数化语句并返回行字典列表（无结果集时返回空列表）。"""
        with self.engine.begin() as conn:
            result = conn.execute(statement, dict(params or {}))
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings().all()]

    def transaction(self, fn: Callable[[Session], T]) -> T:
        """在单个事务中执行回调。"""
        with self._session_factory() as db:
            with db.begin():
                return fn(db)

    def create_schema(self) -> None:
        """按模型建表（开发/测试使用，生产由迁移脚本维护）。"""
        # 延迟导入模型，确保全部表注册到元数据。
        import market_api.models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        """显式关闭连接池。"""
        self.engine.dispose()
