# centralgpt/schemas/auth.py
"""
Pydantic schemas for authentication endpoints.
"""
from pydantic import BaseModel

class KeyLoginIn(BaseModel):
    """Client login: the access key alone identifies the user"""
    key: str

class AdminLoginIn(BaseModel):
    """Admin login: username and access key must both match an admin row"""
    username: str
    key: str

class SessionUserOut(BaseModel):
    """
    Active session user returned by login / me / restore.
    Never contains the access key.
    """
    id: str
    username: str
    role: str = "user"
    createdAt: str
    isAdmin: bool = False
