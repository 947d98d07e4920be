"""Shared utilities for scrapers."""

from .normalizers import (
    normalize_grade,
    parse_amount,
    parse_compact_datetime,
    parse_korean_date,
    parse_price,
    parse_sale_date,
    parse_year,
)
from .extractors import (
    cell_lines,
    cell_text,
    extract_car_info_args,
    extract_charge_params,
    extract_inspection_path,
    extract_show_img_url,
)
from .retry import retry_async, exponential_delay

__all__ = [
    'normalize_grade',
    'parse_amount',
    'parse_compact_datetime',
    'parse_korean_date',
    'parse_price',
    'parse_sale_date',
    'parse_year',
    'cell_lines',
    'cell_text',
    'extract_car_info_args',
    'extract_charge_params',
    'extract_inspection_path',
    'extract_show_img_url',
    'retry_async',
    'exponential_delay',
]
