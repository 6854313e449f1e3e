"""
Shared pricing service for the API process.

Built lazily from the configured snapshot so importing the app has no I/O.
"""
import logging
from typing import Optional

from ..config.settings import get_settings
from ..data.repository import DataFrameRepository
from ..engine.pricing_engine import PricingService

logger = logging.getLogger(__name__)

_service: Optional[PricingService] = None


def get_service() -> PricingService:
    """Get the process-wide pricing service."""
    global _service
    if _service is None:
        settings = get_settings()
        logger.info("Loading pricing snapshot from %s", settings.data_dir)
        repository = DataFrameRepository.load(settings.data_dir)
        _service = PricingService(repository, settings)
    return _service


def reload_service() -> PricingService:
    """Drop the cached service and reload the snapshot from disk."""
    global _service
    _service = None
    return get_service()
