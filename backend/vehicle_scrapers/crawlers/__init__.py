"""Crawler implementations for different source types."""

from .static import StaticCrawler
from .browser import BrowserSession

__all__ = ['StaticCrawler', 'BrowserSession']
