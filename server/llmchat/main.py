from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import Settings, get_settings
from fastapi import APIRouter

# API routers
from .api.v1.models import router as models_router
from .api.v1.chat import router as chat_router
from .client.llm_client import LLMClient
from .client.transport import HttpTransport
from .core.logging import setup_logging
from .core.relay import EventRelay


def create_app(settings: Optional[Settings] = None, transport: Optional[HttpTransport] = None) -> FastAPI:
    settings = settings or get_settings()
    # Setup logging early
    setup_logging(settings.log_level)
    app = FastAPI(title="LLMChat Relay", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One client per app: a single chat request in flight, like the desktop client
    app.state.relay = EventRelay()
    app.state.client = LLMClient(app.state.relay, settings=settings, transport=transport)

    # Mount API v1
    api_v1 = APIRouter()
    api_v1.include_router(models_router, prefix="/v1")
    api_v1.include_router(chat_router, prefix="/v1")
    app.include_router(api_v1, prefix="/api")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.client.aclose()

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/")
    def root():
        return {"service": "llmchat", "version": "0.1.0"}

    return app


app = create_app()
