"""
Configuration for the import pipeline using pydantic-settings.

Holds the heuristic constants (size ceiling, header scan window, match
thresholds, keyword and alias dictionaries) so they can be tuned per
deployment through environment variables or a .env file.
"""
import logging
from typing import Dict, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env
load_dotenv()

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024

DEFAULT_HEADER_KEYWORDS: List[str] = [
    'name', 'id', 'sku', 'qty', 'quantity', 'price', 'date', 'description',
    'desc', 'item', 'product', 'category', 'type', 'status', 'stock',
    'cost', 'unit', 'notes', 'barcode', 'upc', 'ean', 'asin', 'title',
    'brand', 'supplier', 'vendor', 'location', 'bin', 'shelf', 'warehouse',
    'min', 'max', 'reorder', 'weight', 'size', 'color', 'model', 'serial',
]

# Alias groups: canonical name -> common header variations
DEFAULT_COLUMN_ALIASES: Dict[str, List[str]] = {
    'quantity': ['qty', 'qnty', 'amount', 'count', 'stock', 'units'],
    'description': ['desc', 'details', 'info', 'about'],
    'price': ['value', 'rate', 'unit_price', 'unitprice'],
    'cost': ['unit_cost', 'unitcost', 'purchase_price', 'purchaseprice', 'wholesale'],
    'name': ['title', 'item', 'product', 'productname', 'item_name', 'itemname'],
    'sku': ['id', 'code', 'product_id', 'productid', 'item_id', 'itemid', 'barcode', 'upc', 'ean'],
    'date': ['created', 'updated', 'timestamp', 'time', 'datetime', 'created_at', 'updated_at'],
    'category': ['type', 'group', 'class', 'classification'],
    'status': ['state', 'condition', 'availability'],
    'notes': ['note', 'comment', 'comments', 'remarks', 'memo'],
    'location': ['loc', 'bin', 'shelf', 'warehouse', 'storage'],
    'supplier': ['vendor', 'provider', 'source'],
    'minimum': ['min', 'minquantity', 'min_quantity', 'reorder', 'reorderlevel', 'reorder_level'],
}


class ImportConfig(BaseSettings):
    """Import pipeline configuration."""

    model_config = SettingsConfigDict(
        env_prefix="IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Reader
    max_file_size_bytes: int = Field(default=MAX_FILE_SIZE_BYTES, ge=1, description="Max accepted file size in bytes")
    json_array_index_header: bool = Field(
        default=False,
        description="Treat JSON arrays of arrays like objects (adds a synthetic '0','1',... header row)"
    )

    # Header detection
    header_scan_rows: int = Field(default=10, ge=1, le=1000, description="Rows examined for header detection")
    header_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_HEADER_KEYWORDS))

    # Column matching
    fuzzy_match_threshold: float = Field(default=0.6, ge=0.0, le=1.0, description="Min similarity for a fuzzy match")
    suggestion_threshold: float = Field(default=0.3, ge=0.0, le=1.0, description="Min similarity for manual-override suggestions")
    column_aliases: Dict[str, List[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_COLUMN_ALIASES.items()})

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    service_name: str = Field(default="importer", description="Service name shown in log lines")

    @field_validator('header_keywords')
    @classmethod
    def validate_header_keywords(cls, v: List[str]) -> List[str]:
        """Lowercase and drop blank keywords."""
        return [k.strip().lower() for k in v if k and k.strip()]

    @property
    def max_file_size_mb(self) -> int:
        return self.max_file_size_bytes // (1024 * 1024)


# Global configuration instance
_config: ImportConfig | None = None


def get_config() -> ImportConfig:
    """Returns the configuration instance (singleton)."""
    global _config
    if _config is None:
        _config = ImportConfig()
        logger.debug(
            f"[CONFIG] Loaded: max_file_size={_config.max_file_size_mb}MB, "
            f"header_scan_rows={_config.header_scan_rows}, "
            f"fuzzy_threshold={_config.fuzzy_match_threshold}"
        )
    return _config


def reset_config() -> None:
    """Drops the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
