"""
Centralized settings and path configuration for the commercial pricing engine.
"""
from pathlib import Path
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Fixture files (CSV tables + JSON document)
    items_csv: Path
    channels_csv: Path
    market_prices_csv: Path
    allocations_csv: Path
    constraints_csv: Path
    price_books_csv: Path
    price_book_entries_csv: Path
    commercial_json: Path

    # Commercial defaults
    default_currency: str = 'EUR'
    market_price_stale_days: int = 7
    market_price_fresh_hours: int = 24
    cost_fallback_ratio: Decimal = Decimal('0.6')

    # Scheduled policies run within +/- this many minutes of their slot
    schedule_window_minutes: int = 30

    log_level: str = 'INFO'

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure."""
        root = project_root or get_project_root()
        data = data_dir or Path(__file__).resolve().parent.parent / 'data' / 'fixtures'

        return cls(
            project_root=root,
            data_dir=data,
            items_csv=data / 'items.csv',
            channels_csv=data / 'channels.csv',
            market_prices_csv=data / 'market_prices.csv',
            allocations_csv=data / 'allocations.csv',
            constraints_csv=data / 'allocation_constraints.csv',
            price_books_csv=data / 'price_books.csv',
            price_book_entries_csv=data / 'price_book_entries.csv',
            commercial_json=data / 'commercial.json',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
