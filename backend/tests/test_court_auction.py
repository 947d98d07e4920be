"""
Tests for the Court Auction scraper.
"""

import json
from dataclasses import replace
from urllib.parse import quote

from conftest import (
    FakeCourtPage,
    PlaywrightError,
    court_response,
    court_row,
    court_rows,
)
from vehicle_scrapers.base import AuctionSource
from vehicle_scrapers.sites.court_auction import (
    CourtAuctionAdapter,
    find_key,
    find_result_rows,
    is_blocked,
    parse_court_row,
    set_page_number,
    total_pages,
)


class TestParseCourtRow:
    """Test search record conversion."""

    def test_open_record(self, court_config):
        """Test that codes, amounts and dates are mapped."""
        item = parse_court_row(court_row(), court_config)

        assert item.source == AuctionSource.COURT_AUCTION
        assert item.source_id == 'court:2024타경1234:1'
        assert item.case_number == '2024타경1234'
        assert item.mgmt_number == '2024타경1234'
        assert item.model_name == '그랜저 IG'
        assert item.manufacturer == '현대'
        assert item.fuel_type == '휘발유'
        assert item.transmission == '자동'
        assert item.year == 2018
        assert item.price == 15000000
        assert item.min_bid_price == 10500000
        assert item.bid_deadline == '2026-03-05T10:00:00+09:00'
        assert item.location == '서울특별시 강남구 테헤란로 1'
        assert item.court_name == '서울중앙지방법원'
        assert item.organization == '서울중앙지방법원 경매1계'
        assert item.property_type == '자동차'
        assert item.status == '입찰중'
        assert item.auction_count == 1
        assert item.final_price is None
        assert quote('2024타경1234') in item.detail_url
        assert 'maemulSer=1' in item.detail_url

    def test_sold_record(self, court_config):
        """Test that a sale amount marks the record as sold."""
        item = parse_court_row(court_row(maeAmt='13000000'), court_config)

        assert item.status == '매각'
        assert item.result_status == '매각'
        assert item.final_price == 13000000
        assert item.auction_count is None

    def test_fallbacks(self, court_config):
        """Test model name, minimum bid and price fallbacks."""
        item = parse_court_row(
            court_row(carNm='', notifyMinmaePrice1='0', minmaePrice='9000000', gamevalAmt='0'),
            court_config,
        )

        assert item.model_name == '법원경매 2024타경1234'
        assert item.min_bid_price == 9000000
        assert item.price == 9000000

    def test_unknown_codes(self, court_config):
        """Test that unmapped codes leave the field empty."""
        item = parse_court_row(court_row(fuelKindcd='9999', bsgFormCd=None), court_config)
        assert item.fuel_type is None
        assert item.transmission is None

    def test_missing_case_number(self, court_config):
        """Test that a record without a case number is rejected."""
        assert parse_court_row(court_row(srnSaNo=''), court_config) is None


class TestResponseHelpers:
    """Test JSON envelope helpers."""

    def test_find_result_rows(self):
        """Test that rows are found wherever they are nested."""
        rows = court_rows(2)
        assert find_result_rows(court_response(rows, 2)) == rows
        assert find_result_rows({'data': {'dlt_srchResult': []}}) == []

    def test_find_key(self):
        """Test depth-first key lookup."""
        assert find_key(court_response([], 45), 'totalCnt') == '45'
        assert find_key({'a': [{'b': 1}]}, 'b') == 1
        assert find_key({}, 'totalCnt') is None

    def test_is_blocked(self):
        """Test boolean and string ipcheck flags."""
        assert is_blocked(court_response([], 0, ipcheck=False))
        assert is_blocked(court_response([], 0, ipcheck='false'))
        assert not is_blocked(court_response([], 0, ipcheck=True))
        assert not is_blocked({'data': {}})

    def test_set_page_number(self):
        """Test that pageNo keeps its representation and nested fields are updated."""
        body = {'dma_pageInfo': {'pageNo': '1', 'pageSize': 10}, 'other': [{'pageNo': 1}]}
        assert set_page_number(body, 3) == 2
        assert body['dma_pageInfo']['pageNo'] == '3'
        assert body['other'][0]['pageNo'] == 3
        assert set_page_number({'dma_srch': {}}, 2) == 0

    def test_total_pages(self):
        """Test the page count bound."""
        assert total_pages(45, 10, 20) == 5
        assert total_pages(500, 10, 20) == 20
        assert total_pages(None, 10, 20) == 20
        assert total_pages(0, 10, 20) == 0


class TestCourtAuctionAdapter:
    """Test the adapter against a fake browser page."""

    async def test_replays_remaining_pages(self, court_config, run_config):
        """Test that the captured search is replayed for pages 2..N."""
        page = FakeCourtPage(
            court_response(court_rows(10), 25),
            {
                2: court_response(court_rows(10, start=11), 25),
                3: court_response(court_rows(5, start=21), 25),
            },
        )
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        items = await adapter.scrape()

        assert len(items) == 25
        assert page.clicked == [court_config.options['search_button']]
        assert page.replayed == [2, 3]
        assert len({item.source_id for item in items}) == 25

    async def test_replay_drops_browser_managed_headers(self, court_config, run_config):
        """Test that cookies and lengths are left to the browser."""
        page = FakeCourtPage(court_response(court_rows(10), 20), {2: court_response(court_rows(10, start=11), 20)})
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        await adapter.scrape()

        headers = page.replay_args[0]['headers']
        assert headers == {
            'content-type': 'application/json;charset=UTF-8',
            'submissionid': 'mf_wfm_mainFrame_sbm_selectGdsDtlSrch',
        }
        assert page.replay_args[0]['method'] == 'POST'

    async def test_no_response_means_no_items(self, court_config, run_config):
        """Test that a search that never answers yields an empty run."""
        page = FakeCourtPage(None)
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        assert await adapter.scrape() == []
        assert page.replayed == []

    async def test_non_json_search_response(self, court_config, run_config):
        """Test that an HTML error page in place of the search JSON yields an empty run."""
        page = FakeCourtPage(json.JSONDecodeError('Expecting value', '<html>error</html>', 0))
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        assert await adapter.scrape() == []
        assert page.replayed == []

    async def test_unrelated_response_ignored(self, court_config, run_config):
        """Test that only the search action's response is captured."""
        page = FakeCourtPage(court_response(court_rows(3), 3), response_url='https://www.courtauction.go.kr/pgj/other.on')
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        assert await adapter.scrape() == []

    async def test_block_keeps_collected_items(self, court_config, run_config):
        """Test that ipcheck=false ends the run without discarding earlier pages."""
        page = FakeCourtPage(
            court_response(court_rows(10), 30),
            {2: court_response(court_rows(10, start=11), 30, ipcheck=False)},
        )
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        items = await adapter.scrape()

        assert len(items) == 10
        assert page.replayed == [2]

    async def test_blocked_first_page(self, court_config, run_config):
        """Test that a flagged first response yields nothing."""
        page = FakeCourtPage(court_response(court_rows(10), 30, ipcheck=False))
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        assert await adapter.scrape() == []
        assert page.replayed == []

    async def test_max_pages_bound(self, court_config, run_config):
        """Test that the page ceiling caps replays."""
        page = FakeCourtPage(
            court_response(court_rows(10), 500),
            {n: court_response(court_rows(10, start=n * 10 + 1), 500) for n in range(2, 10)},
        )
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, replace(run_config, max_pages=3))
        items = await adapter.scrape()

        assert page.replayed == [2, 3]
        assert len(items) == 30

    async def test_unpageable_request_returns_first_page(self, court_config, run_config):
        """Test that a body without pageNo stops after the captured page."""
        page = FakeCourtPage(court_response(court_rows(10), 25), request_body={'dma_srch': {'lclsUtilCd': '0002'}})
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        items = await adapter.scrape()

        assert len(items) == 10
        assert page.replayed == []

    async def test_failed_replay_stops(self, court_config, run_config):
        """Test that an HTTP error or script failure ends pagination."""
        page = FakeCourtPage(court_response(court_rows(10), 40), {2: {'__status': 500}})
        adapter = CourtAuctionAdapter(court_config)
        await adapter.init(page, run_config)
        assert len(await adapter.scrape()) == 10

        page = FakeCourtPage(court_response(court_rows(10), 40), {2: PlaywrightError("Target closed")})
        adapter = CourtAuctionAdapter(court_config)
        await adapter.init(page, run_config)
        assert len(await adapter.scrape()) == 10

    async def test_bad_record_is_skipped(self, court_config, run_config):
        """Test that a record without a case number is counted as skipped."""
        rows = court_rows(2)
        rows.append({'srnSaNo': '', 'carNm': '미상'})
        page = FakeCourtPage(court_response(rows, 3))
        adapter = CourtAuctionAdapter(court_config)

        await adapter.init(page, run_config)
        items = await adapter.scrape()

        assert len(items) == 2
        assert len(adapter.skipped) == 1
