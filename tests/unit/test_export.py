"""Unit tests for CSV export."""

import csv
import io
from datetime import datetime, timezone

from formbuilder.services.export import export_rows, format_cell, to_csv


CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestExport:
    """Tests for export_rows and to_csv."""

    def test_header_excludes_pii(self, published_form):
        header = next(export_rows(published_form, []))
        assert header == ["response_id", "created_at", "Did you like it?", "Why?", "Topics", "Score"]

    def test_rows(self, published_form):
        """Test one row per response with hidden values blanked."""
        responses = [
            ("r1", CREATED, {"likes": "Yes", "why": "fast", "topics": ["Speed", "Price"], "score": 4.0,
                             "email": "a@example.com"}),
            ("r2", CREATED, {"likes": "No", "why": "leftover", "email": "b@example.com"}),
        ]
        rows = list(export_rows(published_form, responses))

        assert rows[1] == ["r1", CREATED.isoformat(), "Yes", "fast", "Speed; Price", "4"]
        assert rows[2] == ["r2", CREATED.isoformat(), "No", "", "", ""]

    def test_csv_output_parses(self, published_form):
        responses = [("r1", CREATED, {"likes": "Yes", "why": 'said "hi", twice', "email": "x"})]
        text = to_csv(export_rows(published_form, responses))

        parsed = list(csv.reader(io.StringIO(text)))
        assert len(parsed) == 2
        assert parsed[1][3] == 'said "hi", twice'
        assert "x" not in parsed[1]

    def test_format_cell(self):
        assert format_cell(None) == ""
        assert format_cell(3.5) == "3.5"
        assert format_cell(["a"]) == "a"
