# centralgpt/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "CentralGPT API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for the browser client
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Gemini API settings (completion service)
    gemini_api_base: str = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_timeout_sec: float = float(os.getenv("GEMINI_TIMEOUT_SEC", "120"))

    # Veo long-running video jobs
    veo_model: str = os.getenv("VEO_MODEL", "veo-3.1-fast-generate-preview")
    video_poll_interval_sec: float = float(os.getenv("VIDEO_POLL_INTERVAL_SEC", "5"))
    # Upper bound for one video job; the job is abandoned after this many seconds
    video_poll_timeout_sec: float = float(os.getenv("VIDEO_POLL_TIMEOUT_SEC", "600"))

    # Access keys of non-admin users stop working this long after account creation
    access_key_expiry_hours: int = int(os.getenv("ACCESS_KEY_EXPIRY_HOURS", "200000"))

    # Local durable slot for the active access key
    session_file: str = os.getenv("SESSION_FILE", ".centralgpt_session.json")

    # Fallback branding when the app_config row is missing or unreadable
    default_ai_name: str = os.getenv("DEFAULT_AI_NAME", "CentralGPT")
    default_dev_name: str = os.getenv("DEFAULT_DEV_NAME", "XdpzQ")

settings = Settings()  # Instantiate configuration
