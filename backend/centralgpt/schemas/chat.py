# centralgpt/schemas/chat.py
"""
Pydantic schemas for chat endpoints.
Attachments travel as base64 strings and are treated as opaque bytes.
"""
from pydantic import BaseModel, Field
from typing import List

class AttachmentIn(BaseModel):
    data: str  # base64-encoded payload
    mimeType: str = "application/octet-stream"

class SendMessageIn(BaseModel):
    text: str = ""
    attachments: List[AttachmentIn] = Field(default_factory=list)

class ChatTurnOut(BaseModel):
    role: str  # "user" or "model"
    text: str
    isError: bool = False

class VideoIn(BaseModel):
    prompt: str = Field(min_length=1)
