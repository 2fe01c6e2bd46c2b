"""
tests/test_report_formatting.py
"""
from __future__ import annotations

import unittest
from datetime import datetime

from sophub.schemas.report import PaginationParams, ReportFilters
from sophub.services.report_formatting import (
    ExportNotImplemented,
    build_page,
    date_range_window,
    export_rows,
    format_audit_details,
    to_csv,
)


class TestCsv(unittest.TestCase):
    def test_quotes_fields_containing_the_delimiter(self) -> None:
        self.assertEqual(to_csv([{"id": "1", "document": "A, B"}]), 'id,document\n1,"A, B"')

    def test_empty_rows_give_empty_string(self) -> None:
        self.assertEqual(to_csv([]), "")

    def test_cells_are_normalized(self) -> None:
        out = to_csv([{"when": datetime(2024, 1, 2, 3, 4), "flag": True, "missing": None}])
        self.assertEqual(out, "when,flag,missing\n2024-01-02T03:04:00,true,")

    def test_header_comes_from_first_row(self) -> None:
        out = to_csv([{"a": 1, "b": 2}, {"b": 3, "a": 4, "c": 5}])
        self.assertEqual(out.splitlines(), ["a,b", "1,2", "4,3"])


class TestExport(unittest.TestCase):
    def test_csv_media_type(self) -> None:
        content, media_type = export_rows([{"x": 1}], "CSV")
        self.assertEqual(content, "x\n1")
        self.assertEqual(media_type, "text/csv")

    def test_excel_and_pdf_are_not_implemented(self) -> None:
        for fmt in ("excel", "pdf"):
            with self.assertRaises(ExportNotImplemented) as ctx:
                export_rows([{"x": 1}], fmt)
            self.assertEqual(str(ctx.exception), f"Export format {fmt} not implemented yet")

    def test_unknown_format(self) -> None:
        with self.assertRaises(ValueError):
            export_rows([], "xml")


class TestBuildPage(unittest.TestCase):
    def setUp(self) -> None:
        self.rows = [
            {"id": i, "title": f"Doc {i}", "status": "pending" if i % 2 else "acknowledged", "department": "Ops"}
            for i in range(1, 26)
        ]

    def _stats(self, rows):
        return {"total": len(rows), "pending": sum(1 for r in rows if r["status"] == "pending")}

    def test_filters_then_search_then_page(self) -> None:
        page = build_page(
            self.rows,
            ReportFilters(status="PENDING"),
            PaginationParams(page=2, items_per_page=2, search="doc 1"),
            search_fields=("title",),
            stats_fn=self._stats,
        )
        # pending rows with "doc 1" in the title: 1, 11, 13, 15, 17, 19
        self.assertEqual(page.total, 6)
        self.assertEqual([r["id"] for r in page.data], [13, 15])
        self.assertEqual(page.stats, {"total": 6, "pending": 6})

    def test_all_means_no_filter(self) -> None:
        page = build_page(
            self.rows,
            ReportFilters(status="all", department=""),
            PaginationParams(items_per_page=10),
            search_fields=("title",),
            stats_fn=self._stats,
        )
        self.assertEqual(page.total, 25)
        self.assertEqual(len(page.data), 10)

    def test_page_past_the_end_is_empty(self) -> None:
        page = build_page(
            self.rows,
            ReportFilters(),
            PaginationParams(page=9, items_per_page=10),
            search_fields=("title",),
            stats_fn=self._stats,
        )
        self.assertEqual(page.data, [])
        self.assertEqual(page.total, 25)


class TestDateWindow(unittest.TestCase):
    def test_unknown_preset_falls_back_to_thirty_days(self) -> None:
        now = datetime(2024, 3, 31)
        self.assertEqual(date_range_window("bogus", now), (datetime(2024, 3, 1), now))
        self.assertEqual(date_range_window("last-7-days", now)[0], datetime(2024, 3, 24))


class TestAuditDetails(unittest.TestCase):
    def test_description_wins(self) -> None:
        self.assertEqual(
            format_audit_details("sop_updated", {"a": 1}, {"a": 2}, {"description": "Edited title"}),
            "Edited title",
        )

    def test_changed_keys(self) -> None:
        self.assertEqual(
            format_audit_details("sop_updated", {"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4}, None),
            "Changed: b, c",
        )

    def test_fallbacks(self) -> None:
        self.assertEqual(format_audit_details("login_success", None, None, {}), "login_success")
        self.assertEqual(format_audit_details(None, None, None, None), "System action performed")


if __name__ == "__main__":
    unittest.main()
