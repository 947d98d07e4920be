"""
Tests for the Automart inspection report parser.
"""

from vehicle_scrapers.sites.inspection import (
    InspectionReportParser,
    is_header_only,
    parse_inspection_report,
    summarize_grades,
)


class TestInspectionReport:
    """Test parsing of a full report document."""

    def test_basic_info(self, inspection_html):
        """Test that basic info is read positionally from label cells."""
        info = parse_inspection_report(inspection_html)['basic_info']

        assert info['manufacturer'] == '현대'
        assert info['model'] == '쏘나타 DN8'
        assert info['vin'] == 'KMHL341CBLA000001'
        assert info['year'] == '2020'
        assert info['mileage'] == '45,210km'
        assert info['fuel_type'] == '휘발유'
        assert 'displacement' not in info

    def test_accessories(self, inspection_html):
        """Test that filled and empty squares mark equipped and absent options."""
        accessories = parse_inspection_report(inspection_html)['accessories']
        assert accessories == {'네비게이션': True, '선루프': False, '후방카메라': True}

    def test_fluid_conditions(self, inspection_html):
        """Test that only 상/중/하 values are recorded for fluids."""
        fluids = parse_inspection_report(inspection_html)['fluid_conditions']
        assert fluids == {'battery': '상', 'engine_oil': '중', 'coolant': '하'}

    def test_mechanical_inspection(self, inspection_html):
        """Test that items are grouped under the last seen category."""
        mechanical = parse_inspection_report(inspection_html)['mechanical_inspection']
        assert mechanical == {
            '엔진': {'작동상태': '양호', '오일누유': '주의'},
            '조향': {'동력조향': '정상', '스티어링기어': '불량'},
        }

    def test_body_diagram(self, inspection_html):
        """Test that part letters map to names and known conditions are translated."""
        body = parse_inspection_report(inspection_html)['body_diagram']
        assert body['A'] == {'part': '후드', 'condition': 'normal'}
        assert body['B'] == {'part': '프론트 펜더(좌)', 'condition': 'replace'}
        assert body['C'] == {'part': '프론트 펜더(우)', 'condition': '판금'}

    def test_free_text_sections(self, inspection_html):
        """Test special notes and the exterior/interior assessment."""
        report = parse_inspection_report(inspection_html)
        assert report['special_notes'] == '하부 누유 흔적 있음'
        assert report['exterior_interior_assessment'] == '운전석 시트 오염'

    def test_insurance_history(self, inspection_html):
        """Test that count and 만원 amounts are extracted."""
        insurance = parse_inspection_report(inspection_html)['insurance_history']
        assert insurance['count'] == 2
        assert insurance['total_amount'] == 3500000
        assert insurance['details'] == '2회 (총 350만원)'

    def test_absent_sections_omitted(self, inspection_html):
        """Test that sections without content are not emitted."""
        assert 'repair_recommendations' not in parse_inspection_report(inspection_html)

    def test_empty_document(self):
        """Test that a page with no tables yields an empty report."""
        assert parse_inspection_report('<html><body><p>점검 기록 없음</p></body></html>') == {}

    def test_header_only_value_omitted(self):
        """Test that a decorated header sitting in the value cell is not content."""
        html = '<table><tr><th>특이사항</th><td>◈ 특이사항</td></tr></table>'
        assert 'special_notes' not in parse_inspection_report(html)

    def test_split_value_is_widened(self):
        """Test that the longest cell in the label's row is used."""
        html = (
            '<table><tr><td>수리권장</td><td>-</td>'
            '<td>앞 범퍼 교체 및 휠 얼라인먼트 점검 권장</td></tr></table>'
        )
        report = parse_inspection_report(html)
        assert report['repair_recommendations'] == '앞 범퍼 교체 및 휠 얼라인먼트 점검 권장'

    def test_label_synonym_fallthrough(self):
        """Test that an empty value moves on to the next synonym."""
        html = '<table><tr><th>제조사</th><td></td><th>메이커</th><td>기아</td></tr></table>'
        parser = InspectionReportParser(html)
        assert parser.find_label_value(['제조사', '메이커']) == '기아'


class TestHeaderOnly:
    """Test header-only detection."""

    def test_header_values(self):
        """Test decorated and bare section headers."""
        assert is_header_only('◈ 특이사항')
        assert is_header_only('소견')
        assert is_header_only('')
        assert is_header_only('외장 / 내장 소견', '외장/내장 소견')

    def test_content_values(self):
        """Test that real notes are kept."""
        assert not is_header_only('하부 누유 흔적 있음')


class TestSummarizeGrades:
    """Test grade counting across fluids and mechanical items."""

    def test_counts(self, inspection_html):
        """Test that mechanical wording is normalised before counting."""
        report = parse_inspection_report(inspection_html)
        assert summarize_grades(report) == {'good': 3, 'fair': 2, 'poor': 2}

    def test_empty_report(self):
        """Test that an empty report counts nothing."""
        assert summarize_grades({}) == {'good': 0, 'fair': 0, 'poor': 0}
