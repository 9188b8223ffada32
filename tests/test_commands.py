"""
tests.test_commands
~~~~~~~~~~~~~~~~~~~

CommandDispatcher 指令解析测试。
"""
from __future__ import annotations

import pytest

from nego_chat.services.commands import CommandDispatcher


@pytest.fixture()
def dispatcher() -> CommandDispatcher:
    return CommandDispatcher()


@pytest.mark.parametrize(
    ("body", "prefix", "query"),
    [
        ("@nego how much?", "@nego", "how much?"),
        ("@gemini   hello  ", "@gemini", "hello"),
        ("@negotiate a discount", "@negotiate", "a discount"),
        ("please @nego help me", "@nego", "help me"),
        ("@nego first then @gemini second", "@nego", "first then @gemini second"),
        ("@gemini first then @nego second", "@gemini", "first then @nego second"),
    ],
)
def test_parse_commands(dispatcher: CommandDispatcher, body: str, prefix: str, query: str) -> None:
    match = dispatcher.parse(body)
    assert match is not None
    assert match.prefix == prefix
    assert match.query == query


def test_negotiate_is_not_mistaken_for_nego(dispatcher: CommandDispatcher) -> None:
    """``@negotiate`` 与 ``@nego`` 起始位置相同，前缀表顺序决定胜者。"""
    match = dispatcher.parse("@negotiate price")
    assert match.prefix == "@negotiate"
    assert match.query == "price"


def test_empty_query(dispatcher: CommandDispatcher) -> None:
    match = dispatcher.parse("@nego ")
    assert match is not None
    assert match.is_empty


def test_no_command(dispatcher: CommandDispatcher) -> None:
    assert dispatcher.parse("hello everyone") is None
    # 区分大小写
    assert dispatcher.parse("@NEGO help") is None
