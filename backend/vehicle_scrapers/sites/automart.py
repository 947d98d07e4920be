"""
Automart (오토마트) public auction scraper.

Site structure:
- Listing: Search_Main.asp renders an AJAX-refreshed table; page changes go
  through the site's own gfnpagemove(n) function, not the URL
- Rows: 15+ direct <td> cells; the management number cell (YYYY-N) anchors
  each row
- Detail: CarDetail_in.asp carries the gallery token (ShowImgTot onclick),
  the inspection report link (pop_on50 onclick) and 3 main photos (ShowImg)
- Gallery: ImageView.asp lists every photo as <li class="up"><span data-img>
"""

import re
from typing import List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from bs4 import BeautifulSoup, Tag

from ..base import (
    AuctionItem,
    AuctionSource,
    BaseAdapter,
    Colors,
    InspectionReport,
    SourceConfig,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_SOLD,
)
from ..config import get_source_config
from ..utils.extractors import (
    absolutize_image_url,
    cell_lines,
    cell_text,
    extract_car_info_args,
    extract_charge_params,
    extract_inspection_path,
    extract_show_img_url,
    is_placeholder_image,
)
from ..utils.normalizers import parse_korean_date, parse_price, parse_year
from .inspection import parse_inspection_report


MGMT_NUMBER_RE = re.compile(r'^\d{4}-\d{1,4}$')
# "12가3456 (경유)"
CAR_NUMBER_RE = re.compile(r'^(\S+)\s*\(([^)]+)\)')

MIN_ROW_CELLS = 15

# Cell positions in a listing row
CELL_NO = 0
CELL_CAR_INFO = 2       # car number (fuel) / model
CELL_STATUS = 3         # completed listing only
CELL_ORG_INFO = 4       # organization / storage location
CELL_MGMT = 6
CELL_YEAR_TRANS = 8     # year / transmission
CELL_PRICE = 10
CELL_DEADLINE = 12
CELL_RESULT_DATE = 14


@dataclass
class DetailPageData:
    """What one pass over a detail page yields."""
    charge_params: Optional[str] = None
    inspection_url: Optional[str] = None
    fallback_image_urls: List[str] = field(default_factory=list)


def find_listing_rows(soup: BeautifulSoup) -> List[Tag]:
    """
    Locate listing rows via their management number cell.

    Returns:
        One <tr> per distinct management number, in document order
    """
    rows = []
    seen = set()
    for cell in soup.find_all('td'):
        text = cell_text(cell)
        if not MGMT_NUMBER_RE.match(text) or text in seen:
            continue
        row = cell.find_parent('tr')
        if row is None:
            continue
        seen.add(text)
        rows.append(row)
    return rows


def extract_detail_url(row: Tag, source_config: SourceConfig) -> Optional[str]:
    """
    Detail page URL for a listing row.

    Tries <a href="...p_NotNo=..."> first, then gfnCarInfo('notice','car') onclick.
    """
    link = row.select_one('a[href*="p_NotNo"]')
    if link and link.get('href'):
        href = link['href'].strip()
        if href.startswith('http'):
            return href
        separator = '' if href.startswith('/') else '/'
        return f"{source_config.base_url}{separator}{href}"

    onclick_link = row.select_one('a[onclick*="gfnCarInfo"]')
    if onclick_link:
        args = extract_car_info_args(onclick_link.get('onclick', ''))
        if args:
            notice_no, car_no = args
            return source_config.options['detail_url'].format(notice_no=notice_no, car_no=car_no)

    return None


def parse_vehicle_row(
    row: Tag,
    source_config: SourceConfig,
    is_completed: bool = False,
    now: Optional[datetime] = None,
) -> Optional[AuctionItem]:
    """
    Parse one listing table row.

    Args:
        row: <tr> element
        source_config: Automart source configuration (URL templates)
        is_completed: Row comes from the completed-auctions listing
        now: Reference time for year inference in "MM/DD (HH:mm)" dates

    Returns:
        AuctionItem, or None when the row is not a vehicle row
    """
    cells = row.find_all('td', recursive=False)
    if len(cells) < MIN_ROW_CELLS:
        return None
    if not cell_text(cells[CELL_NO]).isdigit():
        return None

    mgmt_number = cell_text(cells[CELL_MGMT])
    if not mgmt_number:
        return None

    car_lines = cell_lines(cells[CELL_CAR_INFO])
    first_line = car_lines[0] if car_lines else ''
    car_match = CAR_NUMBER_RE.match(first_line)
    if car_match:
        car_number = car_match.group(1)
        fuel_type = car_match.group(2).strip()
    else:
        car_number = re.sub(r'\s*\([^)]+\)', '', first_line).strip()
        fuel_type = None
    model_name = car_lines[1] if len(car_lines) > 1 else None

    org_lines = cell_lines(cells[CELL_ORG_INFO])
    organization = org_lines[0] if org_lines else None
    location = org_lines[1] if len(org_lines) > 1 else None

    year_lines = cell_lines(cells[CELL_YEAR_TRANS])
    year = parse_year(year_lines[0], now) if year_lines else None
    transmission = year_lines[1] if len(year_lines) > 1 else None

    price = parse_price(cell_text(cells[CELL_PRICE]))
    bid_deadline = parse_korean_date(' '.join(cell_lines(cells[CELL_DEADLINE])), now)
    result_date = parse_korean_date(' '.join(cell_lines(cells[CELL_RESULT_DATE])), now)

    status = STATUS_ACTIVE
    result_status = None
    final_price = None
    if is_completed:
        status_text = cell_text(cells[CELL_STATUS])
        if STATUS_FAILED in status_text:
            status = result_status = STATUS_FAILED
        elif STATUS_CANCELLED in status_text:
            status = result_status = STATUS_CANCELLED
        else:
            status = result_status = STATUS_SOLD
            final_price = price

    unique_key = f"{mgmt_number}:{car_number}" if car_number else mgmt_number

    return AuctionItem(
        source_id=f"automart:{unique_key}",
        source=AuctionSource.AUTOMART,
        status=status,
        mgmt_number=mgmt_number,
        car_number=car_number or None,
        model_name=model_name,
        fuel_type=fuel_type,
        transmission=transmission,
        year=year,
        price=price,
        bid_deadline=bid_deadline,
        result_date=result_date,
        final_price=final_price,
        result_status=result_status,
        location=location,
        organization=organization,
        detail_url=extract_detail_url(row, source_config),
    )


def parse_detail_page(soup: BeautifulSoup, source_config: SourceConfig) -> DetailPageData:
    """
    Single pass over a detail page.

    Returns:
        Gallery token, absolute inspection report URL and up to N fallback photos
    """
    common_url = source_config.options['common_url']
    max_fallback = source_config.options.get('max_fallback_images', 3)
    data = DetailPageData()

    for element in soup.find_all(attrs={'onclick': True}):
        onclick = element.get('onclick', '')
        if not data.charge_params:
            data.charge_params = extract_charge_params(onclick)
        if not data.inspection_url:
            path = extract_inspection_path(onclick)
            if path:
                data.inspection_url = f"{common_url}/{path}"

    if not data.inspection_url:
        report_link = soup.select_one('a[href*="GmSpec_Report_us.asp"]')
        if report_link:
            href = report_link['href'].strip()
            data.inspection_url = href if href.startswith('http') else f"{common_url}/{href}"

    for link in soup.select('a[href*="ShowImg"]'):
        if len(data.fallback_image_urls) >= max_fallback:
            break
        url = extract_show_img_url(link.get('href', ''))
        if url:
            data.fallback_image_urls.append(url)

    return data


def parse_gallery(soup: BeautifulSoup) -> List[str]:
    """
    Collect photo URLs from the ImageView gallery.

    Only <li class="up"> slots hold photos; empty slots carry data-img="//".
    """
    urls = []
    for li in soup.find_all('li'):
        if 'up' not in (li.get('class') or []):
            continue
        span = li.find('span', attrs={'data-img': True})
        if span is None:
            continue
        raw = span.get('data-img')
        if is_placeholder_image(raw):
            continue
        urls.append(absolutize_image_url(raw))
    return urls


def resolve_images(gallery_urls: List[str], fallback_urls: List[str]) -> List[str]:
    """Full gallery if non-empty, else the detail page photos, else nothing."""
    if gallery_urls:
        return list(gallery_urls)
    if fallback_urls:
        return list(fallback_urls)
    return []


class AutomartAdapter(BaseAdapter):
    """
    Adapter for Automart.

    Walks the active listing (and optionally the completed listing), enriching
    each page's items from their detail pages before moving on, then fetches
    inspection reports once all items are known.
    """

    source = AuctionSource.AUTOMART

    def __init__(self, source_config: Optional[SourceConfig] = None):
        super().__init__(source_config or get_source_config('automart'))
        self.now: Optional[datetime] = None

    async def init(self, page, config) -> None:
        await super().init(page, config)
        self.logger.info(f"Loading {Colors.cyan(self.source_config.listing_url)}")
        await self._goto(self.source_config.listing_url, self.source_config.navigation_timeout)
        await self.wait(self.source_config.initial_wait_seconds)

    async def scrape(self) -> List[AuctionItem]:
        items: List[AuctionItem] = []

        self.logger.info(Colors.bold("Scraping active auctions..."))
        items.extend(await self._scrape_listing(self.source_config.listing_url, is_completed=False))

        if self.config.include_completed and self.source_config.completed_url:
            self.logger.info(Colors.bold("Scraping completed auctions..."))
            try:
                await self._goto(self.source_config.completed_url, self.source_config.navigation_timeout)
                await self.wait(self.source_config.initial_wait_seconds)
            except Exception as e:
                self.logger.error(f"Failed to load completed listing: {e}")
            else:
                items.extend(await self._scrape_listing(self.source_config.completed_url, is_completed=True))

        if self.config.fetch_inspection_reports:
            # one report per vehicle; the completed listing's capture wins
            latest = {item.source_id: item for item in items}
            with_reports = [item for item in latest.values() if item.inspection_report_url]
            if with_reports:
                self.logger.info(f"Fetching inspection reports for {len(with_reports)} vehicles...")
                self.inspection_reports = await self._scrape_inspection_reports(with_reports)
                self.logger.info(f"Fetched {len(self.inspection_reports)} inspection reports")

        return items

    async def _goto(self, url: str, timeout_seconds: float):
        await self.page.goto(url, timeout=int(timeout_seconds * 1000), wait_until='domcontentloaded')

    async def _move_to_page(self, page_num: int):
        """Invoke the listing's own page-change function."""
        function = self.source_config.options.get('page_function', 'gfnpagemove')
        await self.page.evaluate(
            f"(pn) => {{ if (typeof {function} === 'function') {function}(String(pn)); }}",
            page_num,
        )
        await self.wait(self.source_config.page_wait_seconds)
        await self.page.wait_for_load_state('domcontentloaded')

    async def _read_soup(self) -> BeautifulSoup:
        return BeautifulSoup(await self.page.content(), 'html.parser')

    async def _scrape_listing(self, url: str, is_completed: bool) -> List[AuctionItem]:
        """Paginate one listing until an empty page or the page ceiling."""
        items: List[AuctionItem] = []

        for page_num in range(1, self.config.max_pages + 1):
            self.logger.info(f"Processing page {page_num}...")

            if page_num > 1:
                try:
                    await self._move_to_page(page_num)
                except Exception as e:
                    self.logger.error(f"Error navigating to page {page_num}: {e}")
                    break

            try:
                page_items = self._parse_listing_page(await self._read_soup(), is_completed)
            except Exception as e:
                self.logger.error(f"Failed to read page {page_num}: {e}")
                page_items = []

            self.logger.info(f"Page {page_num}: {Colors.green(len(page_items))} vehicles found")

            if not page_items:
                self.logger.info("No more vehicles found, stopping.")
                break

            if self.config.fetch_detail_pages:
                await self._enrich_from_detail_pages(page_items)

            items.extend(page_items)

            if self.config.fetch_detail_pages and any(item.detail_url for item in page_items):
                await self._restore_listing(url, page_num)

        return items

    def _parse_listing_page(self, soup: BeautifulSoup, is_completed: bool) -> List[AuctionItem]:
        page_items = []
        for row in find_listing_rows(soup):
            try:
                item = parse_vehicle_row(row, self.source_config, is_completed, self.now)
            except Exception as e:
                mgmt = next((cell_text(td) for td in row.find_all('td') if MGMT_NUMBER_RE.match(cell_text(td))), '?')
                self.record_skip(mgmt, f"row parse error: {e}")
                continue
            if item is None:
                continue
            page_items.append(item)
            price = f"{item.price:,}원" if item.price is not None else "가격 미상"
            self.logger.info(f"  Found: {item.mgmt_number} - {item.model_name} ({price})")
        return page_items

    async def _restore_listing(self, url: str, page_num: int):
        """Detail navigation drops the listing; reload it at the same page number."""
        try:
            await self._goto(url, self.source_config.navigation_timeout)
            await self.wait(self.source_config.page_wait_seconds)
            if page_num > 1:
                await self._move_to_page(page_num)
        except Exception as e:
            self.logger.error(f"Error returning to listing page {page_num}: {e}")

    async def _enrich_from_detail_pages(self, items: List[AuctionItem]):
        """
        Visit each item's detail page for photos and the inspection report link.

        Image strategy:
            1. Detail page: gallery token, inspection URL, 3 main photos
            2. Gallery page (when a token exists): every filled photo slot
            3. Gallery empty or token missing: the 3 main photos
        """
        gallery_template = self.source_config.options['gallery_url']
        gallery_wait = self.source_config.options.get('gallery_wait_seconds', 0.5)

        for item in items:
            if not item.detail_url:
                continue

            try:
                self.logger.info(f"  Fetching detail for {item.display_key}...")
                await self._goto(item.detail_url, self.source_config.detail_timeout)
                await self.wait(self.config.detail_delay_seconds)

                detail = parse_detail_page(await self._read_soup(), self.source_config)

                if detail.inspection_url:
                    item.inspection_report_url = detail.inspection_url
                    self.logger.debug("    Found inspection report URL")

                gallery_urls: List[str] = []
                if detail.charge_params:
                    await self._goto(gallery_template.format(params=detail.charge_params), self.source_config.detail_timeout)
                    await self.wait(gallery_wait)
                    gallery_urls = parse_gallery(await self._read_soup())

                images = resolve_images(gallery_urls, detail.fallback_image_urls)
                if images:
                    item.image_urls = images
                    origin = 'gallery' if gallery_urls else 'fallback'
                    self.logger.info(f"    Found {len(images)} image(s) from {origin}")

            except Exception as e:
                self.logger.warning(f"    {Colors.yellow('Detail failed')} for {item.display_key}: {e}")

    async def _scrape_inspection_reports(self, items: List[AuctionItem]) -> List[InspectionReport]:
        reports: List[InspectionReport] = []

        for item in items:
            try:
                self.logger.info(f"  Fetching inspection report for {item.display_key}...")
                await self._goto(item.inspection_report_url, self.source_config.detail_timeout)
                await self.wait(self.config.inspection_delay_seconds)

                data = parse_inspection_report(await self.page.content())
                reports.append(InspectionReport(
                    vehicle_source_id=item.source_id,
                    mgmt_number=item.mgmt_number or item.source_id,
                    report_url=item.inspection_report_url,
                    data=data,
                ))
                self.logger.info(f"    Parsed inspection report ({len(data)} sections)")

            except Exception as e:
                self.logger.warning(f"    {Colors.yellow('Inspection failed')} for {item.display_key}: {e}")

        return reports

