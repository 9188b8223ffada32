"""HTTP 与 WebSocket 路由。"""
