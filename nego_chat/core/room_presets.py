"""
nego_chat.core.room_presets
~~~~~~~~~~~~~~~~~~~~~~~~~~~

预置聊天室配置的解析。

预置房间默认定义在随包分发的 ``nego_chat/data/rooms.yaml``，每个房间拥有独立的显示名称和
AI 人设描述。启动时加载并写入 ``RoomRegistry``；未预置的房间在首次
加入时以默认人设懒创建。
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from nego_chat.core.config import PACKAGE_DATA_DIR, PROJECT_ROOT, settings
from nego_chat.core.logging import get_logger

logger = get_logger(__name__)


class RoomPreset(BaseModel):
    id: str = Field(..., min_length=1, description="房间唯一标识")
    name: str = Field(..., min_length=1, description="房间显示名称")
    ai_personality: str = Field(..., min_length=1, description="房间 AI 人设描述")


class RoomPresetFile(BaseModel):
    rooms: list[RoomPreset] = Field(default_factory=list)


def resolve_rooms_path() -> Path:
    """解析预置房间文件的绝对路径。

    未配置 ``ROOMS_FILE`` 时使用包内数据，非 editable 安装同样可用。
    """
    if not settings.ROOMS_FILE:
        return PACKAGE_DATA_DIR / "rooms.yaml"
    path = Path(settings.ROOMS_FILE)
    return path if path.is_absolute() else PROJECT_ROOT / path


def load_room_presets(path: Path | None = None) -> list[RoomPreset]:
    """读取并校验预置房间列表。

    文件缺失或格式错误时只记录告警并返回空列表，不阻止服务启动。
    """
    config_path = path or resolve_rooms_path()
    if not config_path.exists():
        logger.warning("预置房间文件不存在: %s", config_path)
        return []

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        presets = RoomPresetFile(**data).rooms
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        logger.error("预置房间文件解析失败 %s: %s", config_path, e, exc_info=True)
        return []

    logger.info("已加载 %d 个预置房间", len(presets))
    return presets
