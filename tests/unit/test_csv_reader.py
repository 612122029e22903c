from __future__ import annotations

import pytest

from metrics_ingest.csvfile.reader import (
    CsvParseError,
    classify_value,
    detect_delimiter,
    infer_type,
    parse_csv,
    strip_bom,
)
from metrics_ingest.models.csv_result import InferredType


def test_detect_delimiter():
    assert detect_delimiter("a,b,c\n1,2,3") == ","
    assert detect_delimiter("a\tb\tc\n1\t2\t3") == "\t"
    assert detect_delimiter("a;b;c\n1;2,5;3") == ";"
    assert detect_delimiter("single column") == ","


def test_detect_delimiter_tie_prefers_comma():
    assert detect_delimiter("a,b;c") == ","


def test_strip_bom():
    assert strip_bom("﻿Week,Amount") == "Week,Amount"
    assert strip_bom("Week") == "Week"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("6/01/2024", InferredType.DATE),
        ("2024-01-06", InferredType.DATE),
        ("45%", InferredType.PERCENTAGE),
        ("12.5 %", InferredType.PERCENTAGE),
        ("$1,234.56", InferredType.CURRENCY),
        ("-$50", InferredType.CURRENCY),
        ("1,234.56", InferredType.CURRENCY),
        ("1234.56", InferredType.DECIMAL),
        ("42", InferredType.INTEGER),
        ("-7", InferredType.INTEGER),
        ("Residential", InferredType.TEXT),
        ("", InferredType.TEXT),
    ],
)
def test_classify_value(value: str, expected: InferredType):
    assert classify_value(value) is expected


def test_infer_type_majority():
    assert infer_type(["1", "2", "abc"]) is InferredType.INTEGER
    assert infer_type(["abc", "def", "1"]) is InferredType.TEXT
    assert infer_type([]) is InferredType.TEXT


def test_infer_type_mixed_integer_and_decimal():
    assert infer_type(["1", "2.5", "abc", "x"]) is InferredType.DECIMAL


def test_parse_csv_basic():
    content = b"Week Ending,Income,Margin\n6/01/2024,\"$1,000.00\",45%\n13/01/2024,$2500,50%\n"
    result = parse_csv(content)
    assert result.headers == ["Week Ending", "Income", "Margin"]
    assert result.delimiter == ","
    assert result.encoding == "utf-8"
    assert result.total_rows == 2
    types = {c.header: c.inferred_type for c in result.columns}
    assert types == {
        "Week Ending": InferredType.DATE,
        "Income": InferredType.CURRENCY,
        "Margin": InferredType.PERCENTAGE,
    }
    assert result.preview_rows[0] == {"Week Ending": "6/01/2024", "Income": "$1,000.00", "Margin": "45%"}


def test_parse_csv_bom_and_tabs():
    result = parse_csv("﻿Week\tCount\n2024-01-06\t5\n")
    assert result.headers == ["Week", "Count"]
    assert result.delimiter == "tab"


def test_parse_csv_keeps_blank_rows_in_rows_only():
    result = parse_csv("Week,Count\n2024-01-06,5\n,\n2024-01-13,6\n")
    assert result.total_rows == 3
    assert len(result.rows) == 3
    assert [r["Count"] for r in result.preview_rows] == ["5", "6"]


def test_parse_csv_does_not_convert_na_strings():
    result = parse_csv("Source,Count\nNA,1\nnull,2\n")
    assert [r["Source"] for r in result.rows] == ["NA", "null"]


def test_parse_csv_preview_and_sample_limits():
    lines = "\n".join(f"2024-01-06,{i}" for i in range(30))
    result = parse_csv(f"Week,Count\n{lines}\n", preview_rows=3, sample_size=5)
    assert len(result.preview_rows) == 3
    count = next(c for c in result.columns if c.header == "Count")
    assert len(count.sample_values) == 5
    assert result.total_rows == 30


def test_parse_csv_empty_content():
    result = parse_csv(b"")
    assert result.headers == []
    assert result.total_rows == 0


def test_parse_csv_to_dict_omits_rows():
    payload = parse_csv("A,B\n1,2\n").to_dict()
    assert "rows" not in payload
    assert payload["columns"][0] == {"header": "A", "inferred_type": "integer", "sample_values": ["1"]}


def test_parse_csv_unterminated_quote_raises():
    with pytest.raises(CsvParseError):
        parse_csv('A,B\n"unterminated,1\n2,3\n')


def test_parse_csv_overlong_row_is_cut_not_fatal():
    result = parse_csv(b"a,b\n1,2\n3,4,5\n6\n")
    assert result.total_rows == 3
    assert result.rows == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}, {"a": "6", "b": ""}]
