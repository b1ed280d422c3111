# centralgpt/models/__init__.py
"""
Database models module initialization.
Exports all database models for convenient imports throughout the application.

Models exported:
- User: Account identified by a hashed access key
- GlobalConfig: The single app_config row (AI name, persona, API keys, ...)
- ChatLog: One chat turn of a user's transcript
"""
from .user import User
from .global_config import GlobalConfig, GLOBAL_CONFIG_ID
from .chat_log import ChatLog
