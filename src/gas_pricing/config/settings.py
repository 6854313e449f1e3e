"""
Centralized settings and path configuration for the pricing core.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_sample_data_dir() -> Path:
    """Directory holding the bundled sample CSV snapshot."""
    return Path(__file__).resolve().parent.parent / 'data' / 'sample'


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Snapshot source (directory of CSVs or an .xlsx workbook)
    data_dir: Path

    # Currency all deposit rates are quoted in unless a caller says otherwise
    base_currency: str = 'KES'

    # LPG density used to convert kg capacities to liters
    gas_density_kg_per_l: float = 0.51

    # Allowed drift between a requested and a resolved price
    price_tolerance: float = 0.01

    # Window for "expiring soon" price lists
    expiring_soon_days: int = 30

    default_return_condition: str = 'good'
    default_tax_rate: float = 0.0

    # Fall back to the nearest configured capacity when no exact deposit row exists
    deposit_capacity_fallback: bool = True

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        data_dir = os.environ.get('GAS_PRICING_DATA_DIR')

        return cls(
            project_root=root,
            data_dir=Path(data_dir) if data_dir else get_sample_data_dir(),
            base_currency=os.environ.get('GAS_PRICING_BASE_CURRENCY', 'KES'),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
