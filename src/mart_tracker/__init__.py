"""Mart Tracker - Personal grocery price ledger and lowest-price finder."""

from .aggregation import filter_inventory, frequent_items, price_comparison
from .analysis_service import AnalysisError, GeminiImageAnalyzer, ImageAnalyzer
from .config import ConfigManager
from .data_store import BackendType, DataStore, DataStoreError, JSONFileStore
from .models import (
    MAX_PINNED_ITEMS,
    AnalysisResult,
    InventoryItem,
    Mart,
    PriceComparisonRecord,
    PriceEntry,
    Theme,
)
from .output_formatter import OutputFormatter
from .sqlite_store import SQLiteStore
from .tracker import (
    AnalysisFailedError,
    AnalysisSession,
    ItemNotFoundError,
    MartNotFoundError,
    MartTracker,
    PinLimitError,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "AnalysisFailedError",
    "AnalysisResult",
    "AnalysisSession",
    "BackendType",
    "ConfigManager",
    "DataStore",
    "DataStoreError",
    "filter_inventory",
    "frequent_items",
    "GeminiImageAnalyzer",
    "ImageAnalyzer",
    "InventoryItem",
    "ItemNotFoundError",
    "JSONFileStore",
    "Mart",
    "MartNotFoundError",
    "MartTracker",
    "MAX_PINNED_ITEMS",
    "OutputFormatter",
    "PinLimitError",
    "price_comparison",
    "PriceComparisonRecord",
    "PriceEntry",
    "SQLiteStore",
    "Theme",
]
