"""
Base classes for the vehicle auction scraper system.

This module defines the canonical data structures shared by every source
(AuctionItem, InspectionReport), the per-run adapter configuration and the
abstract adapter contract implemented by each site module.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field, asdict
from enum import Enum
from datetime import datetime, timezone
import asyncio
import logging

# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    # Colors
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def blue(text):
        return f"{Colors.BLUE}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


class ScraperType(Enum):
    """Types of scrapers based on source requirements."""
    STATIC = "static"           # httpx, no browser
    JAVASCRIPT = "javascript"   # Playwright session


class AuctionSource(Enum):
    """Known auction sources."""
    AUTOMART = "automart"
    COURT_AUCTION = "court_auction"
    ONBID = "onbid"


# Status labels
STATUS_ACTIVE = '입찰중'
STATUS_FAILED = '유찰'
STATUS_SOLD = '매각'
STATUS_CANCELLED = '취소'

POST_AUCTION_STATUSES = (STATUS_FAILED, STATUS_SOLD, STATUS_CANCELLED)
# 유찰 stays eligible for a later 매각, so it is not terminal
TERMINAL_STATUSES = (STATUS_SOLD, STATUS_CANCELLED)


@dataclass
class SourceConfig:
    """Static configuration for one auction source."""
    name: str                           # Display name
    short_name: str                     # Logger suffix (e.g., 'AUTOMART')
    base_url: str                       # Site root
    scraper_type: ScraperType           # Which session type the adapter needs
    listing_url: Optional[str] = None   # Active listing / search page / API endpoint
    completed_url: Optional[str] = None # Completed-auction listing (Automart)
    page_wait_seconds: float = 2.0      # Wait after a page transition
    initial_wait_seconds: float = 3.0   # Wait after the first page load
    navigation_timeout: float = 30.0    # Seconds for page.goto
    detail_timeout: float = 15.0        # Seconds for detail/inspection page.goto
    items_per_page: int = 20            # API page size
    options: Dict[str, Any] = field(default_factory=dict)  # Source-specific knobs


@dataclass
class AdapterConfig:
    """Per-run options handed to an adapter."""
    max_pages: int = 20
    include_completed: bool = True
    fetch_detail_pages: bool = True
    detail_delay: int = 1500            # ms between detail page fetches
    fetch_inspection_reports: bool = False
    inspection_delay: int = 2000        # ms between inspection report fetches
    api_key: Optional[str] = None

    @property
    def detail_delay_seconds(self) -> float:
        return self.detail_delay / 1000

    @property
    def inspection_delay_seconds(self) -> float:
        return self.inspection_delay / 1000

    @classmethod
    def from_settings(cls, settings) -> 'AdapterConfig':
        return cls(
            max_pages=settings.scrape_max_pages,
            include_completed=settings.scrape_include_completed,
            fetch_detail_pages=settings.scrape_detail_pages,
            detail_delay=settings.scrape_detail_delay,
            fetch_inspection_reports=settings.scrape_inspection_reports,
            inspection_delay=settings.scrape_inspection_delay,
            api_key=settings.onbid_api_key or None,
        )


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuctionItem:
    """Canonical auction record shared by all sources."""
    source_id: str
    source: AuctionSource
    status: str = STATUS_ACTIVE

    # Source-native identifiers
    mgmt_number: Optional[str] = None
    case_number: Optional[str] = None
    car_number: Optional[str] = None

    # Vehicle
    model_name: Optional[str] = None
    manufacturer: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    year: Optional[int] = None
    mileage: Optional[int] = None

    # Commercial
    price: Optional[int] = None
    min_bid_price: Optional[int] = None
    final_price: Optional[int] = None
    bid_deadline: Optional[str] = None  # ISO-8601 with offset
    result_date: Optional[str] = None
    auction_count: Optional[int] = None
    result_status: Optional[str] = None

    # Location / provenance
    location: Optional[str] = None
    organization: Optional[str] = None
    court_name: Optional[str] = None
    property_type: Optional[str] = None
    detail_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    inspection_report_url: Optional[str] = None

    scraped_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        if self.final_price is not None:
            if self.result_status is None:
                raise ValueError(f"{self.source_id}: final_price set without result_status")
            if self.status not in POST_AUCTION_STATUSES:
                raise ValueError(f"{self.source_id}: final_price set on non-terminal status '{self.status}'")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def display_key(self) -> str:
        return self.mgmt_number or self.case_number or self.source_id

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['source'] = self.source.value
        return data

    def to_payload(self) -> Dict[str, Any]:
        """Flat snake_case body for the backend upsert endpoint. None fields are dropped."""
        payload = {
            'mgmt_number': self.mgmt_number or self.source_id,
            'car_number': self.car_number,
            'manufacturer': self.manufacturer,
            'model_name': self.model_name,
            'fuel_type': self.fuel_type,
            'transmission': self.transmission,
            'year': self.year,
            'mileage': self.mileage,
            'price': self.price,
            'min_bid_price': self.min_bid_price,
            'due_date': self.bid_deadline,
            'auction_count': self.auction_count,
            'status': self.status,
            'image_urls': self.image_urls or None,
            'detail_url': self.detail_url,
            'organization': self.organization,
            'location': self.location,
            'source': self.source.value,
            'source_id': self.source_id,
            'final_price': self.final_price,
            'result_status': self.result_status,
            'result_date': self.result_date,
            'case_number': self.case_number,
            'court_name': self.court_name,
            'property_type': self.property_type,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class InspectionReport:
    """A parsed inspection document attached to exactly one AuctionItem."""
    vehicle_source_id: str
    mgmt_number: str
    report_url: str
    data: Dict[str, Any]
    scraped_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'vehicle_source_id': self.vehicle_source_id,
            'report_url': self.report_url,
            'report_data': self.data,
        }


@dataclass
class ScrapeResult:
    """Result of one pipeline run."""
    source: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    total: int = 0
    submitted: int = 0
    failed: int = 0
    inspection_total: int = 0
    inspection_submitted: int = 0
    inspection_failed: int = 0
    errors: int = 0
    error_details: List[Dict] = field(default_factory=list)
    aborted: bool = False               # Adapter setup or scrape raised

    @property
    def fatal(self) -> bool:
        # Setup failed, or items were produced but none reached the backend
        return self.aborted or (self.total > 0 and self.submitted == 0)

    @property
    def success(self) -> bool:
        return not self.fatal

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal else 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict:
        return {
            'source': self.source,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'total': self.total,
            'submitted': self.submitted,
            'failed': self.failed,
            'inspection_total': self.inspection_total,
            'inspection_submitted': self.inspection_submitted,
            'inspection_failed': self.inspection_failed,
            'errors': self.errors,
            'error_details': self.error_details[:10],  # Limit error details
            'aborted': self.aborted,
            'success': self.success,
        }


class BaseAdapter(ABC):
    """
    Abstract base class for all source adapters.

    Subclasses must implement:
    - scrape(): Run the source-specific pagination/extraction and return items

    Optional overrides:
    - init(): Load the first page or read credentials
    - cleanup(): Release source-specific resources

    The session handle (a Playwright page, or None for HTTP-only sources) is
    owned by the orchestrator and only borrowed for the duration of a run.
    """

    source: AuctionSource

    def __init__(self, source_config: SourceConfig):
        """
        Initialize the adapter.

        Args:
            source_config: Static source configuration
        """
        self.source_config = source_config
        self.config: AdapterConfig = AdapterConfig()
        self.page = None
        self.inspection_reports: List[InspectionReport] = []
        # Rows/items dropped during this run, keyed by whatever identified them
        self.skipped: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(f"scraper.{source_config.short_name}")

    @property
    def name(self) -> str:
        return self.source_config.name

    @property
    def requires_browser(self) -> bool:
        return self.source_config.scraper_type == ScraperType.JAVASCRIPT

    async def init(self, page, config: AdapterConfig) -> None:
        """
        Bind the session handle and run configuration.

        Args:
            page: Playwright page (None for sources that do not need a browser)
            config: Per-run adapter configuration
        """
        self.page = page
        self.config = config
        self.inspection_reports = []
        self.skipped = []

    @abstractmethod
    async def scrape(self) -> List[AuctionItem]:
        """
        Scrape the source and return canonical items.

        May also populate self.inspection_reports.
        """
        pass

    async def cleanup(self) -> None:
        """Release adapter resources. The browser session itself is not closed here."""
        pass

    async def wait(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def record_skip(self, key: str, reason: str) -> None:
        """Log and remember a dropped row/item."""
        self.skipped.append({'key': key, 'error': reason})
        self.logger.warning(f"   {Colors.yellow('[SKIP]')} {key}: {reason}")
