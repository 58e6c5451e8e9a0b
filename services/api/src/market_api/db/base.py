"""数据库基础模型导出。

仅提供 Base 定义；生产环境数据库结构由迁移脚本维护，
`Store.create_schema` 只用于开发与测试。
"""

from market_api.models.base import Base

__all__ = ["Base"]
