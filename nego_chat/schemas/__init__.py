"""
nego_chat.schemas
~~~~~~~~~~~~~~~~~
Pydantic schemas and models for the API.
"""
from nego_chat.schemas.api_response import ApiResponse
from nego_chat.schemas.chat import Message, RoomInfoData, User, WsEnvelope

__all__ = ["ApiResponse", "Message", "RoomInfoData", "User", "WsEnvelope"]

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
