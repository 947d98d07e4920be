"""
Court Auction (법원경매) scraper.

The WebSquare UI renders results from an internal JSON search action, so
instead of scraping the rendered grid this adapter:
1. Clicks the search button and captures the first matching JSON response
   (single-shot wait with a timeout; no response means zero items)
2. Replays the same request from inside the page (same cookies/session)
   with only the page number changed, up to min(total pages, max pages)

A response carrying ipcheck=false means the client has been flagged; the
run stops there and keeps what it already has.
"""

import copy
import json
import math
from typing import List, Dict, Any, Optional
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from ..base import (
    AuctionItem,
    AuctionSource,
    BaseAdapter,
    Colors,
    SourceConfig,
    STATUS_ACTIVE,
    STATUS_SOLD,
)
from ..config import get_source_config
from ..errors import SourceBlockedError
from ..utils.normalizers import parse_amount, parse_sale_date, parse_year


# Fuel codes (fuelKindcd) used by the search API
FUEL_TYPE_MAP = {
    '0001001': '휘발유',
    '0001002': '경유',
    '0001003': 'LPG',
    '0001004': '전기',
    '0001005': '하이브리드',
    '0001006': 'CNG',
    '0001007': '수소',
}

# Transmission codes (bsgFormCd)
TRANSMISSION_MAP = {
    '0001101': '자동',
    '0001102': '수동',
    '0001103': '세미오토',
}

ROW_KEY = 'srnSaNo'
TOTAL_KEY = 'totalCnt'
PAGE_NO_KEY = 'pageNo'
PAGE_SIZE_KEY = 'pageSize'
BLOCK_KEY = 'ipcheck'

# Request headers the browser manages itself; fetch() rejects or overrides them
SKIPPED_HEADERS = {
    'host', 'content-length', 'cookie', 'connection', 'accept-encoding',
    'origin', 'referer', 'user-agent',
}

REPLAY_SCRIPT = """
async ({url, method, headers, body}) => {
    const response = await fetch(url, {method, headers, body, credentials: 'include'});
    if (!response.ok) {
        return {__status: response.status};
    }
    return await response.json();
}
"""


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ''


def find_result_rows(data: Any) -> List[Dict[str, Any]]:
    """
    First list of result records anywhere in a search response.

    The envelope nests results under varying keys (data.dlt_srchResult, ...),
    so rows are recognised by carrying a case number.
    """
    if isinstance(data, list):
        if data and all(isinstance(row, dict) for row in data) and any(ROW_KEY in row for row in data):
            return data
        for value in data:
            rows = find_result_rows(value)
            if rows:
                return rows
    elif isinstance(data, dict):
        for value in data.values():
            rows = find_result_rows(value)
            if rows:
                return rows
    return []


def find_key(data: Any, key: str) -> Any:
    """Depth-first lookup of the first value stored under key."""
    if isinstance(data, dict):
        if key in data:
            return data[key]
        for value in data.values():
            found = find_key(value, key)
            if found is not None:
                return found
    elif isinstance(data, list):
        for value in data:
            found = find_key(value, key)
            if found is not None:
                return found
    return None


def is_blocked(data: Any) -> bool:
    """True when any ipcheck flag in the response is false."""
    if isinstance(data, dict):
        for key, value in data.items():
            if key == BLOCK_KEY and (value is False or _text(value).lower() == 'false'):
                return True
            if is_blocked(value):
                return True
    elif isinstance(data, list):
        return any(is_blocked(value) for value in data)
    return False


def set_page_number(payload: Any, page_no: int) -> int:
    """
    Set every pageNo field in a request body, in place.

    Returns:
        Number of fields updated (0 means the body cannot be paged)
    """
    updated = 0
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key == PAGE_NO_KEY and not isinstance(value, (dict, list)):
                # Keep the original representation (string vs number)
                payload[key] = str(page_no) if isinstance(value, str) else page_no
                updated += 1
            else:
                updated += set_page_number(value, page_no)
    elif isinstance(payload, list):
        for value in payload:
            updated += set_page_number(value, page_no)
    return updated


def total_pages(total_count: Optional[int], page_size: int, max_pages: int) -> int:
    """
    Pages to fetch: min(ceil(total / page size), max pages).

    Examples:
        (45, 10, 20) -> 5
        (500, 10, 20) -> 20
        (None, 10, 20) -> 20
    """
    if total_count is None:
        return max_pages
    if page_size <= 0:
        return min(1, max_pages)
    return min(math.ceil(total_count / page_size), max_pages)


def parse_court_row(row: Dict[str, Any], source_config: SourceConfig) -> Optional[AuctionItem]:
    """
    Convert one search result record into an AuctionItem.

    Returns:
        AuctionItem, or None when the record has no case number
    """
    case_number = _text(row.get('srnSaNo'))
    if not case_number:
        return None

    item_seq = _text(row.get('maemulSer')) or '1'
    model_name = _text(row.get('carNm')) or _text(row.get('buldNm'))

    price = parse_amount(row.get('gamevalAmt'), zero_is_none=True)
    min_bid_price = (
        parse_amount(row.get('notifyMinmaePrice1'), zero_is_none=True)
        or parse_amount(row.get('minmaePrice'), zero_is_none=True)
    )

    location = _text(row.get('printSt'))
    if location.startswith('사용본거지'):
        location = location[len('사용본거지'):].lstrip(' :').strip()

    court_name = _text(row.get('jiwonNm'))
    department = _text(row.get('jpDeptNm'))
    organization = f"{court_name} {department}" if department else court_name

    # maeAmt > 0: sold; yuchalCnt > 0: failed rounds so far, still open
    sold_amount = parse_amount(row.get('maeAmt'), zero_is_none=True)
    failed_rounds = parse_amount(row.get('yuchalCnt')) or 0

    status = STATUS_ACTIVE
    result_status = None
    final_price = None
    auction_count = None
    if sold_amount:
        status = result_status = STATUS_SOLD
        final_price = sold_amount
    elif failed_rounds > 0:
        auction_count = failed_rounds

    detail_url = source_config.options['detail_url'].format(
        case_number=quote(case_number),
        item_seq=item_seq,
    )

    return AuctionItem(
        source_id=f"court:{case_number}:{item_seq}",
        source=AuctionSource.COURT_AUCTION,
        status=status,
        mgmt_number=case_number,
        case_number=case_number,
        model_name=model_name or f"법원경매 {case_number}",
        manufacturer=_text(row.get('jejosaNm')) or None,
        fuel_type=FUEL_TYPE_MAP.get(_text(row.get('fuelKindcd'))),
        transmission=TRANSMISSION_MAP.get(_text(row.get('bsgFormCd'))),
        year=parse_year(row.get('carYrtype')),
        price=price if price is not None else min_bid_price,
        min_bid_price=min_bid_price,
        final_price=final_price,
        result_status=result_status,
        bid_deadline=parse_sale_date(row.get('maeGiil')),
        auction_count=auction_count,
        location=location or None,
        organization=organization or None,
        court_name=court_name or None,
        property_type=source_config.options.get('property_type'),
        detail_url=detail_url,
    )


class CourtAuctionAdapter(BaseAdapter):
    """Adapter for the court auction portal (vehicle search)."""

    source = AuctionSource.COURT_AUCTION

    def __init__(self, source_config: Optional[SourceConfig] = None):
        super().__init__(source_config or get_source_config('court_auction'))
        self._replay_request: Optional[Dict[str, Any]] = None

    async def init(self, page, config) -> None:
        await super().init(page, config)
        self._replay_request = None
        self.logger.info(f"Loading {Colors.cyan(self.source_config.listing_url)}")
        await self.page.goto(
            self.source_config.listing_url,
            timeout=int(self.source_config.navigation_timeout * 1000),
            wait_until='domcontentloaded',
        )
        await self.wait(self.source_config.initial_wait_seconds)

    def _is_search_response(self, response) -> bool:
        return self.source_config.options['search_response_path'] in response.url

    async def scrape(self) -> List[AuctionItem]:
        items: List[AuctionItem] = []

        try:
            first_page = await self._capture_search_response()
        except PlaywrightTimeoutError:
            timeout = self.source_config.options['response_timeout_seconds']
            self.logger.warning(f"No search response within {timeout}s, returning 0 items")
            return items
        except PlaywrightError as e:
            self.logger.error(f"Search action failed: {e}")
            return items
        except ValueError as e:
            self.logger.error(f"Search response is not JSON: {e}")
            return items

        try:
            self._check_blocked(first_page, 1)
            items.extend(self._parse_page(first_page, 1))

            total = parse_amount(find_key(first_page, TOTAL_KEY))
            pages = total_pages(total, self._page_size(), self.config.max_pages)
            self.logger.info(f"Total results: {total if total is not None else '?'}, pages to fetch: {pages}")

            for page_no in range(2, pages + 1):
                if self._replay_request is None:
                    break
                await self.wait(self.source_config.page_wait_seconds)

                data = await self._fetch_page(page_no)
                if data is None:
                    break
                self._check_blocked(data, page_no)

                page_items = self._parse_page(data, page_no)
                if not page_items:
                    self.logger.info("No more results, stopping.")
                    break
                items.extend(page_items)

        except SourceBlockedError as e:
            self.logger.error(f"{Colors.red('[BLOCKED]')} {e}; keeping {len(items)} items collected so far")

        return items

    async def _capture_search_response(self) -> Any:
        """Click search and wait for the first matching JSON response."""
        timeout_ms = int(self.source_config.options['response_timeout_seconds'] * 1000)
        async with self.page.expect_response(self._is_search_response, timeout=timeout_ms) as response_info:
            await self.page.click(self.source_config.options['search_button'])
        response = await response_info.value

        self._remember_request(response)
        return await response.json()

    def _remember_request(self, response):
        """Keep what is needed to replay the search with another page number."""
        request = response.request
        post_data = request.post_data
        try:
            body = json.loads(post_data) if post_data else None
        except ValueError:
            body = None

        if body is None or set_page_number(copy.deepcopy(body), 1) == 0:
            self.logger.warning("Search request body has no page number; only the first page is available")
            return

        headers = {
            name: value for name, value in (request.headers or {}).items()
            if name.lower() not in SKIPPED_HEADERS and not name.startswith(':') and not name.lower().startswith('sec-')
        }
        self._replay_request = {
            'url': response.url,
            'method': request.method or 'POST',
            'headers': headers,
            'body': body,
        }

    def _page_size(self) -> int:
        if self._replay_request:
            size = parse_amount(find_key(self._replay_request['body'], PAGE_SIZE_KEY))
            if size:
                return size
        return self.source_config.items_per_page

    async def _fetch_page(self, page_no: int) -> Optional[Any]:
        """Replay the search inside the page session; None means treat as empty."""
        body = copy.deepcopy(self._replay_request['body'])
        set_page_number(body, page_no)
        try:
            data = await self.page.evaluate(REPLAY_SCRIPT, {
                'url': self._replay_request['url'],
                'method': self._replay_request['method'],
                'headers': self._replay_request['headers'],
                'body': json.dumps(body, ensure_ascii=False),
            })
        except PlaywrightError as e:
            self.logger.error(f"Page {page_no} request failed: {e}")
            return None

        if isinstance(data, dict) and '__status' in data:
            self.logger.error(f"Page {page_no} request failed: HTTP {data['__status']}")
            return None
        return data

    def _check_blocked(self, data: Any, page_no: int):
        if is_blocked(data):
            raise SourceBlockedError(f"{BLOCK_KEY}=false on page {page_no}")

    def _parse_page(self, data: Any, page_no: int) -> List[AuctionItem]:
        page_items = []
        for row in find_result_rows(data):
            try:
                item = parse_court_row(row, self.source_config)
            except Exception as e:
                self.record_skip(_text(row.get(ROW_KEY)) or '?', f"record parse error: {e}")
                continue
            if item is None:
                self.record_skip('?', "record without case number")
                continue
            page_items.append(item)
            self.logger.info(f"  Found: {item.case_number} - {item.model_name}")

        self.logger.info(f"Page {page_no}: {Colors.green(len(page_items))} items found")
        return page_items
