"""Record normalizer: shadow fields, date ladder, header cleanup, purity."""
from datetime import date, datetime

import pandas as pd
import pytest

from sheet_assistant.utils.normalizer import (
    DATE_COLUMN,
    FREE_TEXT_COLUMN,
    IDENTIFIER_COLUMN,
    INVALID_DATE,
    OTHER_COLUMN,
    classify_column,
    date_shadow,
    normalize_rows,
    normalize_text,
    parse_date,
    rows_from_dataframe,
    text_of,
    to_number,
)

from conftest import SAMPLE_HEADER, SAMPLE_ROWS


class TestClassification:
    """Column class comes from the header name; first matching class wins."""

    def test_classes(self):
        assert classify_column("Report Date") == DATE_COLUMN
        assert classify_column("MMT No") == IDENTIFIER_COLUMN
        assert classify_column("Functional Location") == FREE_TEXT_COLUMN
        assert classify_column("Action Taken") == FREE_TEXT_COLUMN
        assert classify_column("Cost") == OTHER_COLUMN

    def test_date_wins_over_free_text(self):
        assert classify_column("Action Date") == DATE_COLUMN


class TestNormalizeRows:

    def test_record_count_matches_non_blank_rows(self):
        rows = SAMPLE_ROWS + [["", None, "   "], [None, None, None], [float("nan"), "", ""]]
        records, columns = normalize_rows(SAMPLE_HEADER, rows)
        assert len(records) == 2
        assert columns == SAMPLE_HEADER

    def test_idempotent(self):
        first, _ = normalize_rows(SAMPLE_HEADER, SAMPLE_ROWS)
        second, _ = normalize_rows(SAMPLE_HEADER, SAMPLE_ROWS)
        assert first == second

    def test_free_text_shadows(self):
        records, _ = normalize_rows(["Location"], [["  12 Oak St.  "]])
        r = records[0]
        assert r["Location"] == "12 Oak St."
        assert r["Location_search"] == "12 oak st."
        assert r["Location_upper"] == "12 OAK ST."
        assert r["Location_normalized"] == "12 oak st"

    def test_identifier_shadow(self):
        records, _ = normalize_rows(["MMT No"], [[" MMT-77 "]])
        assert records[0]["MMT No"] == "MMT-77"
        assert records[0]["MMT No_search"] == "mmt-77"
        assert "MMT No_upper" not in records[0]

    def test_date_shadows(self):
        records, _ = normalize_rows(SAMPLE_HEADER, SAMPLE_ROWS)
        r = records[0]
        assert r["Date"] == "6/1/2025"
        assert r["Date_parsed"] == date(2025, 6, 1)
        assert r["Date_month"] == 6
        assert r["Date_year"] == 2025
        assert r["Date_formatted"] == "2025-06-01"

    def test_invalid_and_empty_dates(self):
        records, _ = normalize_rows(["Date", "Action"], [["someday", "a"], ["", "b"], ["6/1/2025", "c"]])
        assert len(records) == 3
        assert records[0]["Date_formatted"] == INVALID_DATE
        assert records[0]["Date_parsed"] is None
        assert records[1]["Date_formatted"] == ""
        assert records[1]["Date_parsed"] is None

    def test_originals_never_overwritten_by_shadows(self):
        records, _ = normalize_rows(["Location", "Location_search"], [["A St", "kept"]])
        assert records[0]["Location"] == "A St"
        assert records[0]["Location_search"] == "kept"

    def test_missing_cells_default_to_empty_and_extra_cells_ignored(self):
        records, _ = normalize_rows(["Location", "Action", "Cost"], [["A St"], ["B St", "Fixed", "5", "extra"]])
        assert records[0]["Action"] == ""
        assert records[0]["Cost"] == ""
        assert "extra" not in records[1].values()

    def test_header_cleanup(self):
        _, columns = normalize_rows([" Location ", "", "Location"], [["a", "b", "c"]])
        assert columns == ["Location", "Column 2", "Location_1"]

    def test_dict_rows(self):
        records, _ = normalize_rows(["Location", "Action"], [{"Location": "A St", "Action": "Fixed"}, {"Location": "B St"}])
        assert records[0]["Action"] == "Fixed"
        assert records[1]["Action"] == ""

    def test_numeric_coercion_when_every_value_is_numeric(self):
        records, _ = normalize_rows(["Cost", "Code"], [["10", "7"], ["2.5", "n/a"], ["1,200", "9"]])
        assert [r["Cost"] for r in records] == [10, 2.5, 1200]
        assert [r["Code"] for r in records] == ["7", "n/a", "9"]

    def test_empty_input(self):
        assert normalize_rows([], []) == ([], [])
        records, columns = normalize_rows(["Location"], [])
        assert records == []
        assert columns == ["Location"]


class TestDateParsing:

    @pytest.mark.parametrize("raw, expected", [
        ("6/15/2025", date(2025, 6, 15)),
        ("2025-06-10", date(2025, 6, 10)),
        ("2024/03/15", date(2024, 3, 15)),
        ("25/12/2024", date(2024, 12, 25)),
        (45658, date(2025, 1, 1)),
        (datetime(2025, 2, 3, 14, 30), date(2025, 2, 3)),
        (date(2025, 2, 3), date(2025, 2, 3)),
    ])
    def test_ladder(self, raw, expected):
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "someday", "N/A", 12, True])
    def test_failures(self, raw):
        assert parse_date(raw) is None

    def test_date_shadow_failure(self):
        assert date_shadow("garbage") == {"parsed": None, "month": None, "year": None, "formatted": INVALID_DATE}


class TestValueHelpers:

    def test_text_of(self):
        assert text_of(12.0) == "12"
        assert text_of(2.5) == "2.5"
        assert text_of(None) == ""
        assert text_of(datetime(2025, 6, 1)) == "2025-06-01"
        assert text_of("  x ") == "x"

    def test_to_number(self):
        assert to_number("42") == 42
        assert to_number("1,234.5") == 1234.5
        assert to_number("abc") is None
        assert to_number(True) is None
        assert to_number(float("inf")) is None

    def test_normalize_text(self):
        assert normalize_text("  Leak -- under   SINK! ") == "leak under sink"


class TestDataFrameIngestion:

    def test_rows_from_dataframe(self):
        df = pd.DataFrame({"Location": ["A St", None], "Cost": [1.0, float("nan")]})
        header, rows = rows_from_dataframe(df)
        assert header == ["Location", "Cost"]
        assert rows[0] == ["A St", 1.0]
        assert rows[1] == [None, None]

    def test_empty_dataframe(self):
        header, rows = rows_from_dataframe(pd.DataFrame(columns=["Location"]))
        assert header == ["Location"]
        assert rows == []
