"""
Automart inspection report parser.

The report (GmSpec_Report_us.asp) is a server-rendered, table-only layout
with no stable ids or classes. Values are discovered positionally: the
value of label L is the cell right after the cell whose text contains L.

Sections produced (absent sections are omitted, never emitted empty):
- basic_info: manufacturer, model, vin, displacement, color, drive_type,
  year, mileage, fuel_type, transmission, vehicle_type
- accessories: {name: equipped} from ■ (equipped) / □ (absent) markers
- fluid_conditions: {fluid_key: 상|중|하}
- mechanical_inspection: {category: {item_label: grade}}
- body_diagram: {A-Q: {part, condition}}
- special_notes, repair_recommendations, exterior_interior_assessment
- insurance_history: {count, total_amount, details}
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union
from bs4 import BeautifulSoup, Tag

from ..utils.extractors import cell_text
from ..utils.normalizers import (
    FLUID_GRADES,
    MECHANICAL_GRADES,
    GRADE_GOOD,
    GRADE_FAIR,
    GRADE_POOR,
    normalize_grade,
)


# Ordered synonyms per basic_info field; first label that yields a value wins
BASIC_INFO_LABELS: List[Tuple[str, List[str]]] = [
    ('manufacturer', ['제조사', '메이커']),
    ('model', ['차량명', '차명']),
    ('vin', ['차대번호', 'VIN']),
    ('displacement', ['배기량']),
    ('color', ['색상']),
    ('drive_type', ['구동방식', '구동']),
    ('year', ['연식', '년식']),
    ('mileage', ['주행거리', '주행']),
    ('fuel_type', ['연료', '사용연료']),
    ('transmission', ['변속기', '변속']),
    ('vehicle_type', ['차종', '용도']),
]

FLUID_LABELS: List[Tuple[str, str]] = [
    ('배터리', 'battery'),
    ('엔진오일', 'engine_oil'),
    ('냉각수', 'coolant'),
    ('파워스티어링오일', 'power_steering_oil'),
    ('파워스티어링', 'power_steering_oil'),
    ('브레이크액', 'brake_fluid'),
    ('워셔액', 'washer_fluid'),
    ('변속기오일', 'transmission_oil'),
    ('변속기 오일', 'transmission_oil'),
]

MECHANICAL_CATEGORIES = ['엔진', '변속기', '조향', '제동', '전기', '현가장치']

BODY_PART_NAMES = {
    'A': '후드',
    'B': '프론트 펜더(좌)',
    'C': '프론트 펜더(우)',
    'D': '프론트 도어(좌)',
    'E': '프론트 도어(우)',
    'F': '리어 도어(좌)',
    'G': '리어 도어(우)',
    'H': '사이드 패널(좌)',
    'I': '사이드 패널(우)',
    'J': '트렁크 리드',
    'K': '라디에이터 서포트',
    'L': '루프 패널',
    'M': '플로어',
    'N': '프론트 범퍼',
    'O': '리어 범퍼',
    'P': '프론트 휠(좌)',
    'Q': '프론트 휠(우)',
}

CONDITION_MAP = {
    '정상': 'normal',
    '흠집': 'scratch',
    '수리': 'repair',
    '교환': 'replace',
    '도색': 'paint',
}

TEXT_SECTIONS: List[Tuple[str, List[str]]] = [
    ('special_notes', ['특이사항']),
    ('repair_recommendations', ['수리권장', '권장수리', '수리']),
]

INSURANCE_LABELS = ['보험이력', '사고이력', '보험']

# Values that are only a (decorated) section header, not content
HEADER_WORDS = {'특이사항', '수리권장', '소견', '외장내장'}
DECORATION_RE = re.compile(r'[◈◇■□▶▷●○※★☆\s]')

ACCESSORY_RE = re.compile(r'([■□])\s*([^\s■□,]+)')
BODY_LETTER_RE = re.compile(r'^[A-Q]$')
COUNT_RE = re.compile(r'(\d+)\s*(?:회|건)')
AMOUNT_RE = re.compile(r'([\d,]+)\s*(만원|원)')

MAX_ACCESSORY_NAME = 20
MAX_MECHANICAL_LABEL = 30
MAX_BODY_VALUE = 10
MAX_FREE_TEXT = 2000


def _is_container(cell: Tag) -> bool:
    """Layout cells wrap whole nested tables; their text would match every label."""
    return cell.find(['td', 'th']) is not None


def _next_cell_text(cell: Tag) -> str:
    return cell_text(cell.find_next_sibling(['td', 'th']))


def is_header_only(value: Optional[str], label: str = '') -> bool:
    """
    True when a free-text value is just a decorated section header.

    Examples:
        "◈ 특이사항" -> True
        "소견" -> True
        "하부 누유 흔적 있음" -> False
    """
    if not value:
        return True
    cleaned = DECORATION_RE.sub('', value)
    if len(cleaned) < 3:
        return True
    if label and cleaned == DECORATION_RE.sub('', label):
        return True
    return cleaned in HEADER_WORDS


class InspectionReportParser:
    """
    Positional label/value miner over one inspection report document.

    Mechanical grades keep their source wording (양호, 주의, ...);
    normalize_grade maps them onto 상/중/하 when needed.

    Usage:
        data = InspectionReportParser(html).parse()
    """

    def __init__(self, source: Union[str, BeautifulSoup]):
        self.soup = source if isinstance(source, BeautifulSoup) else BeautifulSoup(source, 'html.parser')
        self.cells = [c for c in self.soup.find_all(['th', 'td']) if not _is_container(c)]
        self.data_cells = [c for c in self.cells if c.name == 'td']

    def parse(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}

        basic_info = self._parse_basic_info()
        if basic_info:
            result['basic_info'] = basic_info

        accessories = self._parse_accessories()
        if accessories:
            result['accessories'] = accessories

        fluids = self._parse_fluids()
        if fluids:
            result['fluid_conditions'] = fluids

        mechanical = self._parse_mechanical()
        if mechanical:
            result['mechanical_inspection'] = mechanical

        body = self._parse_body_diagram()
        if body:
            result['body_diagram'] = body

        for key, labels in TEXT_SECTIONS:
            text = self._find_free_text(labels)
            if text:
                result[key] = text

        assessment = self._find_assessment()
        if assessment:
            result['exterior_interior_assessment'] = assessment

        insurance = self._parse_insurance()
        if insurance:
            result['insurance_history'] = insurance

        return result

    def find_label_value(self, labels: List[str]) -> Optional[str]:
        """
        Value of the cell after the first cell containing one of labels.

        Synonyms are tried in order; a synonym whose value cell is empty
        falls through to the next one.
        """
        for label in labels:
            for cell in self.cells:
                if label in cell_text(cell):
                    value = _next_cell_text(cell)
                    if value:
                        return value
                    break
        return None

    def _parse_basic_info(self) -> Dict[str, str]:
        info = {}
        for key, labels in BASIC_INFO_LABELS:
            value = self.find_label_value(labels)
            if value:
                info[key] = value
        return info

    def _parse_accessories(self) -> Dict[str, bool]:
        accessories = {}
        for cell in self.data_cells:
            for marker, name in ACCESSORY_RE.findall(cell_text(cell)):
                name = name.strip()
                if name and len(name) < MAX_ACCESSORY_NAME:
                    accessories[name] = marker == '■'
        return accessories

    def _parse_fluids(self) -> Dict[str, str]:
        fluids = {}
        for cell in self.cells:
            text = cell_text(cell)
            for label, key in FLUID_LABELS:
                if label in text:
                    value = _next_cell_text(cell)
                    if value in FLUID_GRADES:
                        fluids[key] = value
        return fluids

    def _parse_mechanical(self) -> Dict[str, Dict[str, str]]:
        mechanical: Dict[str, Dict[str, str]] = {}
        current_category = None

        for row in self.soup.find_all('tr'):
            cells = row.find_all(['th', 'td'], recursive=False)
            if len(cells) < 2:
                continue

            first_text = cell_text(cells[0])
            # Body diagram rows reuse 정상 as a condition, not a grade
            if BODY_LETTER_RE.match(first_text):
                continue
            # "엔진오일" belongs to the fluid table, not the 엔진 category
            if not any(label in first_text for label, _ in FLUID_LABELS):
                for category in MECHANICAL_CATEGORIES:
                    if category in first_text:
                        current_category = category
                        mechanical.setdefault(category, {})
                        break

            if not current_category:
                continue

            texts = [cell_text(c) for c in cells]
            for label, value in zip(texts, texts[1:]):
                if value in MECHANICAL_GRADES and 0 < len(label) < MAX_MECHANICAL_LABEL:
                    mechanical[current_category][label] = value

        return {k: v for k, v in mechanical.items() if v}

    def _parse_body_diagram(self) -> Dict[str, Dict[str, str]]:
        raw = {}
        for cell in self.data_cells:
            letter = cell_text(cell)
            if not BODY_LETTER_RE.match(letter):
                continue
            value = cell_text(cell.find_next_sibling('td'))
            if 0 < len(value) < MAX_BODY_VALUE:
                raw[letter] = value

        return {
            letter: {
                'part': BODY_PART_NAMES.get(letter, letter),
                'condition': CONDITION_MAP.get(condition, condition),
            }
            for letter, condition in raw.items()
        }

    def _widen(self, cell: Tag, value: str) -> str:
        """Longest td text in the label's row; values are often split across cells."""
        row = cell.find_parent('tr')
        if row is None:
            return value
        for td in row.find_all('td', recursive=False):
            text = cell_text(td)
            if len(value) < len(text) < MAX_FREE_TEXT:
                value = text
        return value

    def _free_text_at(self, cell: Tag, label: str) -> Optional[str]:
        value = _next_cell_text(cell)
        if len(value) >= MAX_FREE_TEXT:
            value = ''
        value = self._widen(cell, value)
        if is_header_only(value, label):
            return None
        return value

    def _find_free_text(self, labels: List[str]) -> Optional[str]:
        for label in labels:
            for cell in self.cells:
                if label in cell_text(cell):
                    value = self._free_text_at(cell, label)
                    if value:
                        return value
        return None

    def _find_assessment(self) -> Optional[str]:
        for cell in self.cells:
            text = cell_text(cell)
            if ('외장' in text or '내장' in text) and '소견' in text:
                value = self._free_text_at(cell, text)
                if value:
                    return value
        return None

    def _parse_insurance(self) -> Optional[Dict[str, Any]]:
        details = self.find_label_value(INSURANCE_LABELS)
        if not details or details in INSURANCE_LABELS:
            return None

        count_match = COUNT_RE.search(details)
        total = 0
        for amount, unit in AMOUNT_RE.findall(details):
            digits = amount.replace(',', '')
            if not digits:
                continue
            total += int(digits) * (10000 if unit == '만원' else 1)

        return {
            'count': int(count_match.group(1)) if count_match else 0,
            'total_amount': total,
            'details': details,
        }


def parse_inspection_report(source: Union[str, BeautifulSoup]) -> Dict[str, Any]:
    """
    Parse an inspection report page into the structured report document.

    Args:
        source: Rendered report HTML or an already parsed soup

    Returns:
        Report dict with only the sections that were found
    """
    return InspectionReportParser(source).parse()


def summarize_grades(report: Dict[str, Any]) -> Dict[str, int]:
    """
    Count fluid and mechanical grades on the 상/중/하 scale.

    Returns:
        {'good': n, 'fair': n, 'poor': n}; unrecognised grades are not counted
    """
    counts = {'good': 0, 'fair': 0, 'poor': 0}
    keys = {GRADE_GOOD: 'good', GRADE_FAIR: 'fair', GRADE_POOR: 'poor'}

    grades = list(report.get('fluid_conditions', {}).values())
    for items in report.get('mechanical_inspection', {}).values():
        grades.extend(items.values())

    for grade in grades:
        normalized = normalize_grade(grade)
        if normalized:
            counts[keys[normalized]] += 1
    return counts
