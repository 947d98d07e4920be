"""Per-source adapter implementations."""

from .automart import AutomartAdapter
from .court_auction import CourtAuctionAdapter
from .onbid import OnbidAdapter
from .inspection import parse_inspection_report, summarize_grades

__all__ = [
    'AutomartAdapter',
    'CourtAuctionAdapter',
    'OnbidAdapter',
    'parse_inspection_report',
    'summarize_grades',
]
