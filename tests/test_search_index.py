"""Keyword index, column metadata and suggestions."""
from sheet_assistant.utils.normalizer import normalize_rows
from sheet_assistant.utils.search_index import (
    MAX_SUGGESTIONS,
    TYPE_BOOLEAN,
    TYPE_DATE,
    TYPE_NUMBER,
    TYPE_STRING,
    build_search_index,
    describe_dataset,
    infer_column_type,
    lookup,
    search_suggestions,
    tokenize,
)


def _index(header, rows):
    records, columns = normalize_rows(header, rows)
    return build_search_index(columns, records)


class TestTokenize:

    def test_punctuation_short_tokens_and_stopwords(self):
        assert tokenize("Fixed the leak, again! A-1") == ["fixed", "leak", "again"]

    def test_non_text_values(self):
        assert tokenize(None) == []
        assert tokenize(2025.0) == ["2025"]


class TestBuildSearchIndex:

    def test_tokens_map_to_owning_columns(self, sample_snapshot):
        keywords = sample_snapshot.keywords
        assert keywords["leak"] == frozenset({"Action"})
        assert keywords["st"] == frozenset({"Location"})
        assert "a" not in keywords
        assert "the" not in keywords

    def test_token_shared_by_columns(self):
        index = _index(["Action", "Description"], [["Fixed leak", "Leak under sink"]])
        assert index["keywords"]["leak"] == frozenset({"Action", "Description"})

    def test_column_metadata(self, sample_snapshot):
        meta = sample_snapshot.column_metadata
        assert meta["Date"]["type"] == TYPE_DATE
        assert meta["Location"]["type"] == TYPE_STRING
        assert meta["Location"]["unique_count"] == 2
        assert meta["Location"]["sample_values"] == ["A St", "B St"]
        assert all(m["searchable"] for m in meta.values())

    def test_sample_values_capped_at_five(self):
        index = _index(["Location"], [[f"Site {i}"] for i in range(8)])
        assert len(index["column_metadata"]["Location"]["sample_values"]) == 5
        assert index["column_metadata"]["Location"]["unique_count"] == 8

    def test_high_cardinality_string_column_not_searchable(self):
        rows = [[f"code-{i}", f"note {i}"] for i in range(501)]
        index = _index(["Code", "Comment"], rows)
        assert index["column_metadata"]["Code"]["searchable"] is False
        # always-index name hint wins over cardinality
        assert index["column_metadata"]["Comment"]["searchable"] is True
        assert "Code" not in index["unique_values"]

    def test_numeric_column_searchable_under_limit(self):
        index = _index(["Cost"], [["10"], ["20"], ["10"]])
        meta = index["column_metadata"]["Cost"]
        assert meta["type"] == TYPE_NUMBER
        assert meta["searchable"] is True
        assert index["unique_values"]["Cost"] == frozenset({"10", "20"})

    def test_empty_dataset(self):
        index = build_search_index([], [])
        assert index == {"keywords": {}, "column_metadata": {}, "unique_values": {}}


class TestInferColumnType:

    def test_types(self):
        assert infer_column_type("Cost", [1, 2.5, "3"]) == TYPE_NUMBER
        assert infer_column_type("Date", ["6/1/2025", "later"]) == TYPE_DATE
        assert infer_column_type("Notes", ["6/1/2025"]) == TYPE_STRING
        assert infer_column_type("Done", ["true", "False"]) == TYPE_BOOLEAN
        assert infer_column_type("Empty", ["", None]) == TYPE_STRING


class TestLookup:

    def test_question_words_ignored(self, sample_snapshot):
        hits = lookup(sample_snapshot.keywords, "How many records mention a leak?")
        assert list(hits) == ["leak"]
        assert hits["leak"] == frozenset({"Action"})

    def test_no_hits(self, sample_snapshot):
        assert lookup(sample_snapshot.keywords, "zebra crossing") == {}


class TestSuggestionsAndSummary:

    def test_suggestions_capped(self, maintenance_snapshot):
        suggestions = search_suggestions(maintenance_snapshot.column_metadata)
        assert 0 < len(suggestions) <= MAX_SUGGESTIONS
        assert "Show entries from Date" in suggestions

    def test_describe_dataset(self, sample_snapshot):
        text = describe_dataset("sample.xlsx", sample_snapshot.columns, 2, sample_snapshot.column_metadata)
        assert text.startswith("I've loaded sample.xlsx with 2 records")
        assert "Location" in text
