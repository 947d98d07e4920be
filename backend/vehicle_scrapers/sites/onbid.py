"""
Onbid (온비드) public-sale scraper.

Uses the KAMCO public data XML API (getKamcoPbctCltrList), no browser.
The API serves every asset class, so items are filtered down to vehicles
by manufacturer/model fields or by keywords in the item name.

Response shape:
    <response>
      <header><resultCode>00</resultCode><resultMsg>NORMAL SERVICE.</resultMsg></header>
      <body>
        <items><item><PLNM_NO>..</PLNM_NO>...</item></items>
        <totalCount>45</totalCount>
      </body>
    </response>
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, Tag
import httpx

from ..base import (
    AuctionItem,
    AuctionSource,
    BaseAdapter,
    Colors,
    SourceConfig,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_SOLD,
)
from ..config import get_source_config
from ..crawlers.static import StaticCrawler
from ..utils.normalizers import parse_amount, parse_compact_datetime, parse_year


VEHICLE_KEYWORDS = [
    '자동차', '차량', '승용', '화물', '트럭', 'SUV', '세단',
    '승합', '버스', '밴', '오토바이', '이륜', '덤프', '특수차',
    '레커', '지게차', '굴삭기',
]

# Checked in order against PBCT_CLTR_STAT_NM (substring match)
STATUS_MAP = [
    ('취소', STATUS_CANCELLED),
    ('중지', STATUS_CANCELLED),
    ('매각', STATUS_SOLD),
    ('유찰', STATUS_FAILED),
    ('공매중', STATUS_ACTIVE),
    ('입찰중', STATUS_ACTIVE),
]

RESULT_OK = '00'


@dataclass
class OnbidPage:
    """One parsed API page."""
    items: List[AuctionItem] = field(default_factory=list)
    raw_count: int = 0                  # <item> elements before the vehicle filter
    total_count: Optional[int] = None
    result_code: Optional[str] = None
    result_message: Optional[str] = None
    skipped: List[Dict[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result_code in (None, RESULT_OK)


def _value(item: Tag, tag: str) -> str:
    element = item.find(tag)
    return element.get_text().strip() if element else ''


def is_vehicle_item(item: Tag) -> bool:
    """Vehicles carry MANF/MDL, or say so in the item name."""
    if _value(item, 'MANF') or _value(item, 'MDL'):
        return True
    name = _value(item, 'CLTR_NM').lower()
    return any(keyword.lower() in name for keyword in VEHICLE_KEYWORDS)


def map_status(status_name: str) -> str:
    """
    Map PBCT_CLTR_STAT_NM onto the shared status labels.

    Examples:
        "인터넷입찰진행중(공매중)" -> 입찰중
        "입찰중지" -> 취소
        "" -> 입찰중
    """
    for key, status in STATUS_MAP:
        if key in (status_name or ''):
            return status
    return STATUS_ACTIVE


def parse_onbid_item(item: Tag, source_config: Optional[SourceConfig] = None) -> Optional[AuctionItem]:
    """
    Convert one <item> into an AuctionItem.

    Returns:
        AuctionItem, or None for non-vehicle assets and items without PLNM_NO
    """
    if not is_vehicle_item(item):
        return None

    plnm_no = _value(item, 'PLNM_NO')
    if not plnm_no:
        return None
    pbct_no = _value(item, 'PBCT_NO')
    cltr_mnmt_no = _value(item, 'CLTR_MNMT_NO')

    property_type = source_config.options.get('property_type') if source_config else '자동차'

    return AuctionItem(
        source_id=f"onbid:{plnm_no}-{pbct_no}-{cltr_mnmt_no}",
        source=AuctionSource.ONBID,
        status=map_status(_value(item, 'PBCT_CLTR_STAT_NM')),
        mgmt_number=cltr_mnmt_no or plnm_no,
        model_name=_value(item, 'MDL') or _value(item, 'CLTR_NM') or None,
        manufacturer=_value(item, 'MANF') or None,
        year=parse_year(_value(item, 'NRGT')),
        mileage=parse_amount(_value(item, 'VHCL_MLGE')),
        fuel_type=_value(item, 'FUEL') or None,
        transmission=_value(item, 'GRBX') or None,
        price=parse_amount(_value(item, 'APSL_ASES_AVG_AMT')),
        min_bid_price=parse_amount(_value(item, 'MIN_BID_PRC')),
        bid_deadline=parse_compact_datetime(_value(item, 'PBCT_CLS_DTM')),
        location=_value(item, 'NMRD_ADRS') or _value(item, 'LDNM_ADRS') or None,
        organization=_value(item, 'ORG_NM') or None,
        property_type=property_type,
    )


def parse_onbid_response(xml: str, source_config: Optional[SourceConfig] = None) -> OnbidPage:
    """
    Parse one API response.

    Args:
        xml: Response body
        source_config: Onbid source configuration

    Returns:
        OnbidPage with vehicle items, raw item count and the reported total
    """
    soup = BeautifulSoup(xml, 'xml')
    page = OnbidPage()

    result_code = soup.find('resultCode')
    if result_code:
        page.result_code = result_code.get_text().strip()
        message = soup.find('resultMsg')
        page.result_message = message.get_text().strip() if message else None
    if not page.ok:
        return page

    total = soup.find('totalCount')
    if total:
        page.total_count = parse_amount(total.get_text())

    raw_items = soup.find_all('item')
    page.raw_count = len(raw_items)
    for raw in raw_items:
        try:
            item = parse_onbid_item(raw, source_config)
        except Exception as e:
            page.skipped.append({'key': _value(raw, 'PLNM_NO') or '?', 'error': f"item parse error: {e}"})
            continue
        if item:
            page.items.append(item)
    return page


class OnbidAdapter(BaseAdapter):
    """
    Adapter for the Onbid public data API.

    No API key means the source is skipped (empty result), not a failed run.
    """

    source = AuctionSource.ONBID

    def __init__(self, source_config: Optional[SourceConfig] = None, crawler: Optional[StaticCrawler] = None):
        super().__init__(source_config or get_source_config('onbid'))
        self.crawler = crawler or StaticCrawler(rate_limit=self.source_config.page_wait_seconds)
        self.api_key: Optional[str] = None

    async def init(self, page, config) -> None:
        await super().init(page, config)
        self.api_key = config.api_key
        if not self.api_key:
            self.logger.warning(Colors.yellow("ONBID_API_KEY is not set. Onbid scraping will be skipped."))

    async def scrape(self) -> List[AuctionItem]:
        if not self.api_key:
            self.logger.warning("Skipping Onbid scrape: no API key configured.")
            return []

        items: List[AuctionItem] = []
        fetched = 0
        total_count: Optional[int] = None
        empty_parses = 0
        max_empty_parses = self.source_config.options.get('max_empty_parses', 2)

        for page_no in range(1, self.config.max_pages + 1):
            self.logger.info(f"Fetching Onbid page {page_no}...")

            result = await self._fetch_page(page_no)
            if result is None or result.raw_count == 0:
                self.logger.info("Empty response, stopping.")
                break

            if total_count is None and result.total_count is not None:
                total_count = result.total_count
                self.logger.info(f"Total items available: {total_count}")

            fetched += result.raw_count
            items.extend(result.items)
            self.logger.info(
                f"Page {page_no}: {Colors.green(len(result.items))} vehicle items "
                f"(total so far: {len(items)})"
            )

            if total_count is not None and fetched >= total_count:
                self.logger.info("All pages fetched.")
                break

            empty_parses = empty_parses + 1 if not result.items else 0
            if empty_parses >= max_empty_parses:
                self.logger.info(f"No vehicle items in {empty_parses} consecutive pages, stopping.")
                break

        self.logger.info(f"Onbid scraping complete: {len(items)} vehicles found.")
        return items

    async def _fetch_page(self, page_no: int) -> Optional[OnbidPage]:
        """Fetch and parse one page; None means treat as an empty page."""
        params = {
            'serviceKey': self.api_key,
            'numOfRows': self.source_config.items_per_page,
            'pageNo': page_no,
            **self.source_config.options.get('params', {}),
        }
        try:
            xml = await self.crawler.fetch(self.source_config.listing_url, params=params)
        except httpx.HTTPError as e:
            self.logger.error(f"Failed to fetch Onbid page {page_no}: {e}")
            return None

        if not xml or not xml.strip():
            return None

        result = parse_onbid_response(xml, self.source_config)
        if not result.ok:
            self.logger.error(f"Onbid API error {result.result_code}: {result.result_message}")
            return None
        for skip in result.skipped:
            self.record_skip(skip['key'], skip['error'])
        return result

    async def cleanup(self) -> None:
        await self.crawler.close()
