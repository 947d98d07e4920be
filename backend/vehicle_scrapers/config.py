"""
Source configurations for the three known auction sources.

Each source has a SourceConfig that defines:
- URLs for the listing/search page or API endpoint
- Scraper type (javascript = Playwright session, static = plain HTTP)
- Page-transition waits and source-specific options
"""

from .base import SourceConfig, ScraperType


# ============================================================
# SOURCE CONFIGURATIONS
# ============================================================

AUTOMART_COMMON_URL = 'https://www.automart.co.kr/views/pub_auction/Common'

SOURCES = {
    # ========== JAVASCRIPT ==========
    # Playwright session; pages are driven through the site's own scripts

    'automart': SourceConfig(
        name='Automart',
        short_name='AUTOMART',
        base_url='https://www.automart.co.kr',
        listing_url='https://www.automart.co.kr/views/pub_auction/Search_Main.asp?tmode=1&window=ok',
        completed_url='https://www.automart.co.kr/views/pub_auction/Search_Main.asp?tmode=2&window=ok',
        scraper_type=ScraperType.JAVASCRIPT,
        page_wait_seconds=2.0,
        initial_wait_seconds=3.0,
        options={
            'common_url': AUTOMART_COMMON_URL,
            # Client-side page change function rendered by the listing table
            'page_function': 'gfnpagemove',
            'gallery_url': AUTOMART_COMMON_URL + '/ImageView.asp?filenm=&{params}',
            'detail_url': AUTOMART_COMMON_URL + '/CarDetail_in.asp?p_sel=0&bidtype=1&p_NotNo={notice_no}&p_Code=1&p_CarNo={car_no}&window=ok',
            'gallery_wait_seconds': 0.5,
            'max_fallback_images': 3,
        },
    ),

    'court_auction': SourceConfig(
        name='법원경매',
        short_name='COURT',
        base_url='https://www.courtauction.go.kr',
        listing_url='https://www.courtauction.go.kr/pgj/index.on?w2xPath=/pgj/ui/pgj100/PGJ151F00.xml',
        scraper_type=ScraperType.JAVASCRIPT,
        page_wait_seconds=2.0,
        initial_wait_seconds=3.0,
        items_per_page=10,
        options={
            'search_button': '#mf_wfm_mainFrame_btn_gdsDtlSrch',
            # Fragment identifying the internal search action's JSON response
            'search_response_path': '/pgj/pgjsearch/searchControllerMain.on',
            'response_timeout_seconds': 15.0,
            'detail_url': 'https://www.courtauction.go.kr/pgj/index.on?w2xPath=/pgj/ui/pgj100/PGJ154M03.xml&srnSaNo={case_number}&maemulSer={item_seq}',
            'property_type': '자동차',
        },
    ),

    # ========== STATIC ==========
    # Public XML data API, no browser needed

    'onbid': SourceConfig(
        name='온비드',
        short_name='ONBID',
        base_url='http://openapi.onbid.co.kr',
        listing_url='http://openapi.onbid.co.kr/openapi/services/KamcoPblsalThingInquireSvc/getKamcoPbctCltrList',
        scraper_type=ScraperType.STATIC,
        page_wait_seconds=0.5,
        initial_wait_seconds=0.0,
        items_per_page=20,
        options={
            # Disposal method: sale
            'params': {'DPSL_MTD_CD': '0001'},
            'property_type': '자동차',
            # Consecutive pages without a single vehicle before giving up
            'max_empty_parses': 2,
        },
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_source_config(source_key: str) -> SourceConfig:
    """
    Get configuration for a source by its key.

    Args:
        source_key: Source identifier (e.g., 'automart', 'onbid')

    Returns:
        SourceConfig for the source

    Raises:
        ValueError: If source_key is not found
    """
    if source_key not in SOURCES:
        valid_keys = ', '.join(sorted(SOURCES.keys()))
        raise ValueError(f"Unknown source: '{source_key}'. Valid sources: {valid_keys}")
    return SOURCES[source_key]

