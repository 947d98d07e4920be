"""
Data extraction utilities for scrapers.

These functions pull values out of table cells and inline JavaScript
handler attributes (onclick/href) using regex patterns.
"""

import re
from typing import List, Optional, Tuple
from bs4 import Comment, NavigableString, Tag

# ShowImgTot('TotCarPhoto','','chargecd=CHIN02&cifyear=2026&cifseqno=286&carno=XXX7655')
SHOW_IMG_TOT_RE = re.compile(r"ShowImgTot\('[^']+','[^']*','([^']+)'\)")
# pop_on50('Inspect','GmSpec_Report_us.asp?chargecd=...',800,800)
INSPECTION_POPUP_RE = re.compile(r"pop_on50\s*\(\s*'[^']*'\s*,\s*'(GmSpec_Report_us\.asp\?[^']+)'")
# ShowImg('CarPhoto','','image.automart.co.kr/...jpg')
SHOW_IMG_RE = re.compile(r"ShowImg\('[^']+','[^']*','([^']+)'")
# gfnCarInfo('NOTICE_NO', 'CAR_NO', ...)
CAR_INFO_RE = re.compile(r"gfnCarInfo\s*\(\s*'([^']+)'\s*,\s*'([^']+)'")

BLOCK_TAGS = ['div', 'p', 'li', 'tr']


def cell_text(cell: Optional[Tag]) -> str:
    """Full text content of a cell, trimmed (inner whitespace preserved)."""
    if cell is None:
        return ''
    return cell.get_text().strip()


def cell_lines(cell: Optional[Tag]) -> List[str]:
    """
    Split a cell into its visual lines.

    <br> and block-level children start a new line, mirroring how a browser
    renders the cell. Blank lines are dropped.
    """
    if cell is None:
        return []
    pieces = []
    for node in cell.descendants:
        if isinstance(node, Tag):
            if node.name == 'br' or node.name in BLOCK_TAGS:
                pieces.append('\n')
        elif isinstance(node, NavigableString) and not isinstance(node, Comment):
            pieces.append(str(node))
    text = ''.join(pieces)
    return [line.strip() for line in text.split('\n') if line.strip()]


def extract_charge_params(onclick: str) -> Optional[str]:
    """Gallery access token from a ShowImgTot(...) handler."""
    match = SHOW_IMG_TOT_RE.search(onclick or '')
    return match.group(1) if match else None


def extract_inspection_path(onclick: str) -> Optional[str]:
    """Relative inspection report URL from a pop_on50(...) handler."""
    match = INSPECTION_POPUP_RE.search(onclick or '')
    return match.group(1) if match else None


def extract_show_img_url(href: str) -> Optional[str]:
    """Photo URL from a ShowImg(...) link."""
    match = SHOW_IMG_RE.search(href or '')
    if not match or not match.group(1):
        return None
    return absolutize_image_url(match.group(1))


def extract_car_info_args(onclick: str) -> Optional[Tuple[str, str]]:
    """(notice number, car number) from a gfnCarInfo(...) handler."""
    match = CAR_INFO_RE.search(onclick or '')
    if not match:
        return None
    return match.group(1), match.group(2)


def absolutize_image_url(raw: str) -> str:
    """
    Make protocol-relative or bare-host image URLs absolute.

    Examples:
        //image.automart.co.kr/a.jpg -> https://image.automart.co.kr/a.jpg
        image.automart.co.kr/a.jpg -> https://image.automart.co.kr/a.jpg
    """
    raw = raw.strip()
    if raw.startswith('http'):
        return raw
    if raw.startswith('//'):
        return f"https:{raw}"
    return f"https://{raw}"


def is_placeholder_image(raw: Optional[str]) -> bool:
    """Empty gallery slots carry a blank or bare '//' source."""
    if raw is None:
        return True
    raw = raw.strip()
    return raw in ('', '//', 'http://', 'https://')
