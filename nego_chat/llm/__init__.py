"""Gemini 客户端与 AI 谈判顾问网关。"""
