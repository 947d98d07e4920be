"""
Pytest configuration and fixtures for vehicle scraper tests.

No test touches the network or a real browser: Playwright pages are replaced
by small fakes and HTTP goes through httpx.MockTransport.
"""

import json
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from vehicle_scrapers.base import AdapterConfig
from vehicle_scrapers.config import SOURCES


# ============================================================
# SOURCE CONFIGS WITHOUT WAITS
# ============================================================

def _no_waits(key: str, **options):
    config = SOURCES[key]
    return replace(
        config,
        page_wait_seconds=0.0,
        initial_wait_seconds=0.0,
        options={**config.options, **options},
    )


@pytest.fixture
def automart_config():
    """Automart source config with all waits disabled."""
    return _no_waits('automart', gallery_wait_seconds=0)


@pytest.fixture
def court_config():
    """Court Auction source config with all waits disabled."""
    return _no_waits('court_auction', response_timeout_seconds=0.1)


@pytest.fixture
def onbid_config():
    """Onbid source config with all waits disabled."""
    return _no_waits('onbid')


@pytest.fixture
def run_config():
    """Adapter options without inter-item delays."""
    return AdapterConfig(
        max_pages=20,
        include_completed=False,
        fetch_detail_pages=False,
        detail_delay=0,
        fetch_inspection_reports=False,
        inspection_delay=0,
    )


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


# ============================================================
# AUTOMART
# ============================================================

AUTOMART_LISTING_URL = SOURCES['automart'].listing_url
AUTOMART_COMPLETED_URL = SOURCES['automart'].completed_url
EMPTY_LISTING = '<html><body><table><tr><th>No</th></tr></table></body></html>'


def automart_row(
    no: int,
    mgmt: str,
    car_number: str = '12가3456',
    fuel: str = '경유',
    model: str = '쏘나타 DN8',
    organization: str = '서울특별시청',
    location: str = '서울 강서 보관소',
    year: str = '2019',
    transmission: str = '자동',
    price: str = '12,340,000',
    deadline: str = '02/14 (15:00)',
    result_date: str = '02/16 (10:00)',
    status: str = '',
    notice_no: Optional[str] = None,
) -> str:
    """One 15-cell listing row as rendered by Search_Main.asp."""
    cells = [''] * 15
    cells[0] = str(no)
    if notice_no:
        cells[1] = f'<a href="javascript:;" onclick="gfnCarInfo(\'{notice_no}\', \'{car_number}\', \'1\')">보기</a>'
    cells[2] = f'{car_number} ({fuel})<br>{model}'
    cells[3] = status
    cells[4] = f'{organization}<br>{location}'
    cells[6] = mgmt
    cells[8] = f'{year}<br>{transmission}'
    cells[10] = price
    cells[12] = deadline
    cells[14] = result_date
    return '<tr>' + ''.join(f'<td>{cell}</td>' for cell in cells) + '</tr>'


def automart_listing(rows: List[str]) -> str:
    header = '<tr><th>No</th><th>사진</th><th>차량정보</th></tr>'
    return f'<html><body><table class="list">{header}{"".join(rows)}</table></body></html>'


def automart_page_rows(count: int, start: int = 1, year: int = 2026) -> List[str]:
    return [automart_row(n, f'{year}-{n}', car_number=f'{n:02d}가{1000 + n}') for n in range(start, start + count)]


class FakeAutomartPage:
    """
    Stand-in for a Playwright page on Automart.

    listings maps a listing URL to its pages' HTML (index 0 = page 1);
    other URLs are served from documents, where an Exception value makes
    goto() raise.
    """

    def __init__(self, listings: Dict[str, List[str]], documents: Optional[Dict[str, Any]] = None):
        self.listings = listings
        self.documents = documents or {}
        self.url: Optional[str] = None
        self.page_num = 1
        self.gotos: List[str] = []
        self.page_moves: List[int] = []

    async def goto(self, url, timeout=None, wait_until=None):
        self.gotos.append(url)
        document = self.documents.get(url)
        if isinstance(document, Exception):
            raise document
        self.url = url
        self.page_num = 1

    async def evaluate(self, script, arg=None):
        self.page_moves.append(arg)
        self.page_num = int(arg)

    async def wait_for_load_state(self, state=None):
        pass

    async def content(self) -> str:
        if self.url in self.listings:
            pages = self.listings[self.url]
            if self.page_num <= len(pages):
                return pages[self.page_num - 1]
            return EMPTY_LISTING
        return self.documents.get(self.url, '<html><body></body></html>')


# ============================================================
# COURT AUCTION
# ============================================================

COURT_SEARCH_URL = 'https://www.courtauction.go.kr/pgj/pgjsearch/searchControllerMain.on'


def court_row(case_number: str = '2024타경1234', item_seq: str = '1', **overrides) -> Dict[str, Any]:
    row = {
        'srnSaNo': case_number,
        'maemulSer': item_seq,
        'carNm': '그랜저 IG',
        'jejosaNm': '현대',
        'fuelKindcd': '0001001',
        'bsgFormCd': '0001101',
        'carYrtype': '2018',
        'gamevalAmt': '15000000',
        'notifyMinmaePrice1': '10500000',
        'minmaePrice': '0',
        'maeGiil': '20260305',
        'printSt': '사용본거지 : 서울특별시 강남구 테헤란로 1',
        'jiwonNm': '서울중앙지방법원',
        'jpDeptNm': '경매1계',
        'yuchalCnt': '1',
        'maeAmt': '0',
    }
    row.update(overrides)
    return row


def court_response(rows: List[Dict[str, Any]], total: int, ipcheck: Any = True) -> Dict[str, Any]:
    return {
        'data': {
            'ipcheck': ipcheck,
            'dma_pageInfo': {'totalCnt': str(total), 'pageNo': '1'},
            'dlt_srchResult': rows,
        }
    }


def court_rows(count: int, start: int = 1) -> List[Dict[str, Any]]:
    return [court_row(f'2024타경{1000 + n}') for n in range(start, start + count)]


class FakeRequest:
    def __init__(self, body: Dict[str, Any]):
        self.method = 'POST'
        self.headers = {
            'content-type': 'application/json;charset=UTF-8',
            'submissionid': 'mf_wfm_mainFrame_sbm_selectGdsDtlSrch',
            'cookie': 'JSESSIONID=abc',
            'content-length': '120',
        }
        self.post_data = json.dumps(body, ensure_ascii=False)


class FakeResponse:
    def __init__(self, url: str, body: Any, request: FakeRequest):
        self.url = url
        self._body = body
        self.request = request

    async def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeEventInfo:
    def __init__(self, response: Optional[FakeResponse]):
        self._response = response

    @property
    def value(self):
        async def resolve():
            return self._response
        return resolve()


class FakeExpectResponse:
    """expect_response() context: times out on exit when nothing matched."""

    def __init__(self, response: Optional[FakeResponse], timeout: float):
        self.info = FakeEventInfo(response)
        self.response = response
        self.timeout = timeout

    async def __aenter__(self):
        return self.info

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None and self.response is None:
            raise PlaywrightTimeoutError(f"Timeout {self.timeout}ms exceeded while waiting for event \"response\"")
        return False


class FakeCourtPage:
    """
    Stand-in for a Playwright page on the court auction portal.

    first_page is the JSON captured after the search click (None = never
    arrives, an Exception value makes response.json() raise); replay_pages
    maps page numbers to the JSON returned by the in-page fetch replay (an
    Exception value makes evaluate() raise).
    """

    def __init__(
        self,
        first_page: Any,
        replay_pages: Optional[Dict[int, Any]] = None,
        response_url: str = COURT_SEARCH_URL,
        request_body: Optional[Dict[str, Any]] = None,
    ):
        self.request_body = request_body or {
            'dma_pageInfo': {'pageNo': 1, 'pageSize': 10, 'totalYn': 'Y'},
            'dma_srchGdsDtlSrch': {'cortOfcCd': '', 'pgmId': 'PGJ151F01', 'lclsUtilCd': '0002'},
        }
        self.first_page = first_page
        self.replay_pages = replay_pages or {}
        self.response_url = response_url
        self.clicked: List[str] = []
        self.replayed: List[int] = []
        self.replay_args: List[Dict[str, Any]] = []

    async def goto(self, url, timeout=None, wait_until=None):
        pass

    def expect_response(self, predicate: Callable, timeout: float = None):
        response = None
        if self.first_page is not None:
            candidate = FakeResponse(self.response_url, self.first_page, FakeRequest(self.request_body))
            if predicate(candidate):
                response = candidate
        return FakeExpectResponse(response, timeout)

    async def click(self, selector):
        self.clicked.append(selector)

    async def evaluate(self, script, arg=None):
        self.replay_args.append(arg)
        page_no = json.loads(arg['body'])['dma_pageInfo']['pageNo']
        self.replayed.append(page_no)
        data = self.replay_pages.get(page_no, court_response([], 0))
        if isinstance(data, Exception):
            raise data
        return data


# ============================================================
# ONBID
# ============================================================

def onbid_item(
    plnm_no: str,
    pbct_no: str = '1',
    cltr_mnmt_no: str = '2024-0100-000001',
    name: str = '승용자동차 쏘나타',
    model: str = '쏘나타',
    manufacturer: str = '현대',
    status: str = '인터넷입찰진행중',
    **extra: str,
) -> str:
    fields = {
        'PLNM_NO': plnm_no,
        'PBCT_NO': pbct_no,
        'CLTR_MNMT_NO': cltr_mnmt_no,
        'CLTR_NM': name,
        'MDL': model,
        'MANF': manufacturer,
        'NRGT': '2019',
        'VHCL_MLGE': '85000',
        'FUEL': '휘발유',
        'GRBX': '자동',
        'APSL_ASES_AVG_AMT': '9000000',
        'MIN_BID_PRC': '8100000',
        'PBCT_CLS_DTM': '20260214150000',
        'PBCT_CLTR_STAT_NM': status,
        'NMRD_ADRS': '서울특별시 강남구 테헤란로 1',
        'ORG_NM': '한국자산관리공사',
    }
    fields.update(extra)
    body = ''.join(f'<{tag}>{value}</{tag}>' for tag, value in fields.items() if value is not None)
    return f'<item>{body}</item>'


def onbid_response(items: List[str], total: int, result_code: str = '00', message: str = 'NORMAL SERVICE.') -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<response><header><resultCode>{result_code}</resultCode><resultMsg>{message}</resultMsg></header>'
        f'<body><items>{"".join(items)}</items><numOfRows>20</numOfRows><pageNo>1</pageNo>'
        f'<totalCount>{total}</totalCount></body></response>'
    )


# ============================================================
# INSPECTION REPORT
# ============================================================

INSPECTION_REPORT_HTML = """
<html><body>
<table>
  <tr><td>
    <table>
      <tr><th>제조사</th><td>현대</td><th>차량명</th><td>쏘나타 DN8</td></tr>
      <tr><th>차대번호</th><td>KMHL341CBLA000001</td><th>연식</th><td>2020</td></tr>
      <tr><th>주행거리</th><td>45,210km</td><th>사용연료</th><td>휘발유</td></tr>
    </table>
  </td></tr>
</table>
<table>
  <tr><td>옵션</td><td>■ 네비게이션 □ 선루프 ■ 후방카메라</td></tr>
</table>
<table>
  <tr><th>배터리</th><td>상</td><th>엔진오일</th><td>중</td></tr>
  <tr><th>냉각수</th><td>하</td><th>브레이크액</th><td>불량</td></tr>
</table>
<table>
  <tr><td>엔진</td><td>작동상태</td><td>양호</td></tr>
  <tr><td></td><td>오일누유</td><td>주의</td></tr>
  <tr><td>조향</td><td>동력조향</td><td>정상</td></tr>
  <tr><td></td><td>스티어링기어</td><td>불량</td></tr>
</table>
<table>
  <tr><td>A</td><td>정상</td><td>B</td><td>교환</td></tr>
  <tr><td>C</td><td>판금</td></tr>
</table>
<table>
  <tr><th>◈ 특이사항</th><td>하부 누유 흔적 있음</td></tr>
  <tr><th>외장/내장 소견</th><td>운전석 시트 오염</td></tr>
  <tr><th>보험이력</th><td>2회 (총 350만원)</td></tr>
</table>
</body></html>
"""


@pytest.fixture
def inspection_html():
    return INSPECTION_REPORT_HTML

