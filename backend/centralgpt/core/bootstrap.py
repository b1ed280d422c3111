# centralgpt/core/bootstrap.py
"""
Bootstrap module for application initialization.
Creates the app_config row and a default admin on first startup.
"""
import os
import logging
from centralgpt.models.global_config import GlobalConfig, GLOBAL_CONFIG_ID
from centralgpt.models.user import User
from centralgpt.services.persona import default_app_config
from centralgpt.store.base import RemoteStore, ROLE_ADMIN

logger = logging.getLogger("uvicorn.error")

async def ensure_global_config(store: RemoteStore) -> None:
    """
    Create the app_config singleton row with default values if it is missing.
    Extra API keys can be seeded with GEMINI_API_KEYS (comma separated).
    """
    if await GlobalConfig.filter(id=GLOBAL_CONFIG_ID).exists():
        return
    defaults = default_app_config()
    seed_keys = [k.strip() for k in os.getenv("GEMINI_API_KEYS", "").split(",") if k.strip()]
    await store.update_global_config({
        "ai_name": defaults.ai_name,
        "ai_persona": defaults.ai_persona,
        "dev_name": defaults.dev_name,
        "api_keys": seed_keys,
        "avatar_url": defaults.avatar_url,
    })
    logger.warning("[bootstrap] Created app_config row with %d API key(s)", len(seed_keys))

async def ensure_default_admin(store: RemoteStore) -> None:
    """
    If no admin exists in the database, create a default admin based on environment variables.
    Only takes effect under the following conditions:
      - Currently no user with role="admin"
      - And ADMIN_ACCESS_KEY is set (to avoid a guessable default key)
    Environment variables:
      ADMIN_USERNAME   (default: "admin")
      ADMIN_ACCESS_KEY (required, otherwise won't create)
    """
    has_admin = await User.filter(role=ROLE_ADMIN).exists()
    if has_admin:
        return

    admin_key = os.getenv("ADMIN_ACCESS_KEY")
    if not admin_key:
        logger.warning("[bootstrap] No admin present, but ADMIN_ACCESS_KEY not set -> skip creating default admin.")
        return

    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    u = await store.insert_user(username=admin_username, access_key=admin_key, role=ROLE_ADMIN)
    logger.warning("[bootstrap] Created default admin -> username=%s id=%s", u.username, u.id)
