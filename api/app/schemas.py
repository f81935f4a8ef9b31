from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MatchActionRequest(CamelModel):
    target_user_id: str = Field(default="", alias="targetUserId")
    action: str = ""


class SendMessageRequest(CamelModel):
    receiver_id: str = Field(default="", alias="receiverId")
    content: Any = None
    message_type: str = Field(default="text", alias="messageType")
    match_id: str | None = Field(default=None, alias="matchId")


class TypingRequest(CamelModel):
    match_id: str = Field(default="", alias="matchId")
    receiver_id: str = Field(default="", alias="receiverId")
    is_typing: Any = Field(default=None, alias="isTyping")


class ReadReceiptRequest(CamelModel):
    match_id: str = Field(default="", alias="matchId")
