"""
nego_chat.core.config
~~~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）

注意 ``GEMINI_API_KEY`` 与 ``MONGO_URI`` 均为可选项：缺失时 AI 与持久化
功能降级，但聊天室本身必须照常可用。
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")

# 项目根目录（nego_chat/core/config.py 向上三级）
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent

# 随包分发的数据目录（nego_chat/data）
PACKAGE_DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Nego AI Chat", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── API Keys ──────────────────────────────────────────────────────
    GEMINI_API_KEY: str = Field(
        default="",
        description="Google Gemini API Key（为空时 AI 功能返回服务不可用提示）",
    )

    # ── LLM ───────────────────────────────────────────────────────────
    GEMINI_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Gemini 生成模型名称",
    )

    # ── 鉴权 ──────────────────────────────────────────────────────────
    AUTH_TOKENS: dict[str, str] = Field(
        default_factory=dict,
        description="Bearer Token → 显示名称的映射（JSON 格式），用于受保护的 REST 接口",
    )

    # ── 持久化（可选）────────────────────────────────────────────────
    MONGO_URI: str = Field(default="", description="MongoDB 连接串，为空则不持久化")
    MONGO_DB_NAME: str = Field(default="nego_chat", description="MongoDB 数据库名")

    # ── 聊天室 ────────────────────────────────────────────────────────
    HISTORY_LIMIT: int = Field(default=100, ge=1, description="每个房间保留的消息条数上限")
    WS_RATE_LIMIT_INTERVAL: float = Field(
        default=0.5,
        ge=0.0,
        description="同一连接两条消息之间的最小间隔（秒）",
    )
    ROOMS_FILE: str = Field(
        default="",
        description="预置房间配置文件路径（相对项目根目录）；留空使用随包分发的 rooms.yaml",
    )
    STATIC_DIR: str = Field(
        default="public",
        description="前端静态资源目录（相对项目根目录），不存在时不挂载",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=3002, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """是否允许所有 CORS 来源。非 prod 环境允许，方便本地调试。"""
        return not self.is_prod

    @property
    def ai_enabled(self) -> bool:
        """是否配置了 Gemini 凭证。"""
        return bool(self.GEMINI_API_KEY.strip())

    @property
    def persistence_enabled(self) -> bool:
        """是否配置了 MongoDB。"""
        return bool(self.MONGO_URI.strip())

    def missing_credentials(self) -> list[str]:
        """返回未配置的外部凭证名称列表（仅用于启动时告警）。"""
        missing: list[str] = []
        if not self.ai_enabled:
            missing.append("GEMINI_API_KEY")
        if not self.AUTH_TOKENS:
            missing.append("AUTH_TOKENS")
        return missing


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
