# centralgpt/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from centralgpt.config import settings
from centralgpt.context import AppContext
from centralgpt.core.db import init_db, close_db
from centralgpt.core.bootstrap import ensure_default_admin, ensure_global_config

from centralgpt.api.v1.routers import auth, chat, admin
from centralgpt.api.v1.routers.ws_config import router as ws_config_router

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (browser client on a dev server port)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def on_startup():
    await init_db()
    ctx = AppContext()
    # First run: make sure there is a config row and an admin to log in with
    await ensure_global_config(ctx.store)
    await ensure_default_admin(ctx.store)
    await ctx.start()
    app.state.ctx = ctx
    logger.info("[startup] %s ready (gateway=%s)", settings.APP_NAME, ctx.gateway.name)

@app.on_event("shutdown")
async def on_shutdown():
    ctx = getattr(app.state, "ctx", None)
    if ctx is not None:
        await ctx.stop()
    await close_db()

# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(chat.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

# WebSocket
app.include_router(ws_config_router)

@app.get("/healthz")
def healthz():
    return {"ok": True}

def run():
    """Console entry point: serve the API on HOST:PORT."""
    import uvicorn
    uvicorn.run("centralgpt.main:app", host=settings.host, port=settings.port)
