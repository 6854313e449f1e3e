import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config.settings import get_settings
from .pricing_api import router as pricing_router
from .state import get_service, reload_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Gas Pricing API",
    description="Price lists, weight-based gas pricing, cylinder deposits and return credits",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing_router)


@app.get("/")
async def root():
    return {"status": "online", "message": "Gas Pricing API Active"}


@app.get("/system/status")
async def get_status():
    settings = get_settings()
    return {
        "engine_active": True,
        "data_dir": str(settings.data_dir),
        "base_currency": settings.base_currency,
    }


@app.post("/system/reload")
async def reload_snapshot():
    """Reload the pricing snapshot from disk."""
    reload_service()
    return {"success": True}


__all__ = ['app', 'get_service']
