from pydantic import BaseModel
from typing import Optional


class IdentifyRequest(BaseModel):
    # Optional so a missing field reaches the pipeline and becomes a 400 with a message
    image: Optional[str] = None   # data URI, URL or raw base64


class MessageResponse(BaseModel):
    message: str


class DeleteEntryResponse(BaseModel):
    deleted: bool
    id: str


class StatusResponse(BaseModel):
    vision_adapter: str
    vision_ready: bool
    history_size: int
    history_capacity: int
    identify_count: int
    fallback_count: int
    last_error: Optional[str] = None
    last_identified: Optional[str] = None
    logs: list[str]
