# centralgpt/schemas/admin.py
"""
Pydantic schemas for admin endpoints: app_config and user management.
"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

class GlobalConfigOut(BaseModel):
    aiName: str
    aiPersona: str
    devName: str
    apiKeys: List[str]
    avatarUrl: str = ""

class GlobalConfigUpdateIn(BaseModel):
    """All fields optional; empty strings leave the stored value unchanged"""
    aiName: Optional[str] = None
    aiPersona: Optional[str] = None
    devName: Optional[str] = None
    avatarUrl: Optional[str] = None
    apiKeys: Optional[List[str]] = None

class ApiKeyIn(BaseModel):
    key: str = Field(min_length=1)

class AdminUserOut(BaseModel):
    id: str
    username: str
    role: Literal["user", "admin"]
    createdAt: str
    keyHint: Optional[str] = None  # e.g. "CGPT-…W3RT"
    profile: Optional[Dict[str, Any]] = None
    config: Optional[Dict[str, Any]] = None

class AdminUserCreateIn(BaseModel):
    username: str = Field(min_length=1, max_length=256)
    accessKey: Optional[str] = None  # Generated when omitted
    role: Literal["user", "admin"] = "user"
    createdAt: Optional[datetime] = None
    profile: Optional[Dict[str, Any]] = None
    config: Optional[Dict[str, Any]] = None

class AdminUserUpdateIn(BaseModel):
    """Only provided fields are updated"""
    username: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None
    accessKey: Optional[str] = None
    profile: Optional[Dict[str, Any]] = None
    config: Optional[Dict[str, Any]] = None
