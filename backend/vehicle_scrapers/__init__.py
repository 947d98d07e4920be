"""
Vehicle auction ingestion for Automart, Court Auction and Onbid.

This package provides:
- Source adapters (browser-driven HTML table, intercepted JSON API, public XML API)
- Detail page enrichment and inspection report parsing
- Deduplication and retrying submission to the backend upsert API
"""

from .base import (
    AdapterConfig,
    AuctionItem,
    AuctionSource,
    BaseAdapter,
    InspectionReport,
    ScrapeResult,
    ScraperType,
    SourceConfig,
)
from .config import SOURCES, get_source_config
from .manager import ADAPTER_REGISTRY, ScraperManager, get_adapter
from .pipeline import ApiClient, deduplicate_items

__all__ = [
    'AdapterConfig',
    'AuctionItem',
    'AuctionSource',
    'BaseAdapter',
    'InspectionReport',
    'ScrapeResult',
    'ScraperType',
    'SourceConfig',
    'SOURCES',
    'get_source_config',
    'ADAPTER_REGISTRY',
    'ScraperManager',
    'get_adapter',
    'ApiClient',
    'deduplicate_items',
]
