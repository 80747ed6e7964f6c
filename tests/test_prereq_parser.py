import math

from prereq_parser import find_dangling_prereqs, parse_prereq_ids


class TestParsePrereqIds:
    def test_none_string(self):
        assert parse_prereq_ids("none") == []

    def test_none_value(self):
        assert parse_prereq_ids(None) == []

    def test_nan(self):
        assert parse_prereq_ids(math.nan) == []

    def test_empty_list(self):
        assert parse_prereq_ids([]) == []

    def test_single(self):
        assert parse_prereq_ids("COE0007") == ["COE0007"]

    def test_semicolon_separated(self):
        assert parse_prereq_ids("COE0001; COE0003") == ["COE0001", "COE0003"]

    def test_mixed_separators(self):
        assert parse_prereq_ids("COE0001, COE0003 and cpe-0005 / CPE0005L") == [
            "COE0001", "COE0003", "CPE0005", "CPE0005L",
        ]

    def test_annotation_stripped(self):
        assert parse_prereq_ids("CPE0005 (may be concurrent)") == ["CPE0005"]

    def test_list_input_normalized(self):
        assert parse_prereq_ids(["coe0001", " COE0003 "]) == ["COE0001", "COE0003"]

    def test_duplicates_keep_first_seen_order(self):
        assert parse_prereq_ids("COE0003; COE0001; COE0003") == ["COE0003", "COE0001"]


class TestFindDanglingPrereqs:
    def test_reports_missing_ids(self):
        courses = [
            {"id": "COE0007", "prerequisites": ["COE0001", "COE0099"]},
            {"id": "COE0001", "prerequisites": []},
        ]
        assert find_dangling_prereqs(courses) == {"COE0007": ["COE0099"]}

    def test_clean_catalog(self):
        courses = [
            {"id": "COE0007", "prerequisites": ["COE0001"]},
            {"id": "COE0001", "prerequisites": []},
        ]
        assert find_dangling_prereqs(courses) == {}
