"""
nego_chat.services.commands
~~~~~~~~~~~~~~~~~~~~~~~~~~~

消息内联指令解析。

消息正文中任意位置出现 ``@gemini`` / ``@negotiate`` / ``@nego`` 时，
其后的文本被视为发给谈判顾问的问题。匹配规则：

  - 区分大小写的子串查找，不要求出现在开头；
  - 在字符串中 **最先出现** 的前缀胜出；
  - 位置相同时按 ``COMMAND_PREFIXES`` 的顺序决定，因此 ``@negotiate``
    必须排在 ``@nego`` 之前（后者是前者的前缀）。
"""
from __future__ import annotations

from dataclasses import dataclass

COMMAND_PREFIXES: tuple[str, ...] = ("@gemini", "@negotiate", "@nego")

EMPTY_QUERY_MESSAGE = "يرجى تقديم استفسار أو موقف تفاوضي بعد @nego أو @gemini"


@dataclass(frozen=True)
class CommandMatch:
    prefix: str
    query: str

    @property
    def is_empty(self) -> bool:
        return not self.query


class CommandDispatcher:
    """按固定前缀表解析消息中的 AI 指令。"""

    def __init__(self, prefixes: tuple[str, ...] = COMMAND_PREFIXES) -> None:
        self.prefixes = prefixes

    def parse(self, body: str) -> CommandMatch | None:
        """解析消息正文。

        Args:
            body: 原始消息文本。

        Returns:
            命中的前缀及其后的查询文本（已去除首尾空白）；没有任何前缀时返回 ``None``。
        """
        best: tuple[int, int, str] | None = None
        for order, prefix in enumerate(self.prefixes):
            position = body.find(prefix)
            if position < 0:
                continue
            candidate = (position, order, prefix)
            if best is None or candidate < best:
                best = candidate

        if best is None:
            return None

        position, _, prefix = best
        query = body[position + len(prefix):].strip()
        return CommandMatch(prefix=prefix, query=query)
