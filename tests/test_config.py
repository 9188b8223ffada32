"""
tests.test_config
~~~~~~~~~~~~~~~~~

配置与预置房间加载测试。
"""
from __future__ import annotations

from pathlib import Path

from nego_chat.core.config import PACKAGE_DATA_DIR, Settings, settings
from nego_chat.core.room_presets import load_room_presets, resolve_rooms_path


def test_test_environment_is_active() -> None:
    assert settings.is_test
    assert settings.ai_enabled is False
    assert settings.persistence_enabled is False
    assert settings.AUTH_TOKENS == {"test-token": "Tester"}


def test_missing_credentials_are_reported() -> None:
    config = Settings(GEMINI_API_KEY="", MONGO_URI="")
    assert "GEMINI_API_KEY" in config.missing_credentials()


def test_bundled_presets_load() -> None:
    presets = {preset.id: preset for preset in load_room_presets()}
    assert set(presets) == {"general", "tech", "creative", "business"}
    assert presets["general"].name == "General Chat"


def test_default_presets_ship_inside_the_package() -> None:
    path = resolve_rooms_path()
    assert path == PACKAGE_DATA_DIR / "rooms.yaml"
    assert path.parent.parent.name == "nego_chat"
    assert path.exists()


def test_missing_presets_file(tmp_path: Path) -> None:
    assert load_room_presets(tmp_path / "absent.yaml") == []


def test_invalid_presets_file(tmp_path: Path) -> None:
    path = tmp_path / "rooms.yaml"
    path.write_text("rooms:\n  - id: only-id\n", encoding="utf-8")
    assert load_room_presets(path) == []


def test_custom_presets_file(tmp_path: Path) -> None:
    path = tmp_path / "rooms.yaml"
    path.write_text(
        "rooms:\n"
        "  - id: deals\n"
        "    name: Deals\n"
        "    ai_personality: negotiation coach\n",
        encoding="utf-8",
    )
    presets = load_room_presets(path)
    assert [p.id for p in presets] == ["deals"]
