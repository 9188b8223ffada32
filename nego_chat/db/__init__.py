"""
nego_chat.db
~~~~~~~~~~~~

MongoDB 异步连接管理（可选）。

使用 ``motor`` 提供的 ``AsyncIOMotorClient``。未配置 ``MONGO_URI`` 或连接失败时
持久化整体关闭，聊天功能不受影响。
"""
from __future__ import annotations

from urllib.parse import urlparse, urlunparse

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from nego_chat.core.config import settings
from nego_chat.core.logging import get_logger

logger = get_logger(__name__)

_client: AsyncIOMotorClient | None = None


def _mask_uri(uri: str) -> str:
    """将 MongoDB URI 中的密码替换为 ``***``，防止日志泄漏凭证。"""
    parsed = urlparse(uri)
    if parsed.password:
        masked = parsed._replace(
            netloc=f"{parsed.username}:***@{parsed.hostname}"
            + (f":{parsed.port}" if parsed.port else ""),
        )
        return urlunparse(masked)
    return uri


async def connect_mongo() -> bool:
    """初始化 MongoDB 连接池。应在 lifespan startup 中调用。

    Returns:
        是否连接成功。未配置或连接失败都返回 ``False``。
    """
    global _client
    if not settings.persistence_enabled:
        logger.info("未配置 MONGO_URI，消息不持久化")
        return False

    client = AsyncIOMotorClient(settings.MONGO_URI, serverSelectionTimeoutMS=3000)
    try:
        await client[settings.MONGO_DB_NAME].command("ping")
    except Exception as e:
        logger.error("MongoDB 连接失败，持久化已关闭: %s", e, exc_info=True)
        client.close()
        return False

    _client = client
    logger.info(
        "MongoDB 已连接 | uri=%s | db=%s",
        _mask_uri(settings.MONGO_URI),
        settings.MONGO_DB_NAME,
    )
    return True


async def close_mongo() -> None:
    """关闭 MongoDB 连接池。应在 lifespan shutdown 中调用。"""
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB 连接已关闭")


def get_database() -> AsyncIOMotorDatabase | None:
    """获取默认数据库实例，未连接时返回 ``None``。"""
    if _client is None:
        return None
    return _client[settings.MONGO_DB_NAME]
