"""聊天室领域服务。"""
