"""Nego AI 房产谈判聊天室服务端。"""

__version__ = "0.1.0"
