"""
tests/test_view_state.py

Report view transitions and the speculative acknowledge board.
"""
from __future__ import annotations

import unittest

from sqlalchemy.exc import OperationalError

from sophub.schemas.report import PaginationParams, ReportFilters, ReportPage
from sophub.services.view_state import (
    AssignmentBoard,
    FetchFailed,
    ReportView,
    ReportViewState,
    SetFilters,
    SetPagination,
    SetReportType,
    reduce_report_state,
)


class TestReducer(unittest.TestCase):
    def test_filter_change_resets_page(self) -> None:
        state = ReportViewState(
            filters=ReportFilters(status="all"),
            pagination=PaginationParams(page=3, items_per_page=10),
        )
        new = reduce_report_state(state, SetFilters(ReportFilters(status="pending")))
        self.assertEqual(new.filters.status, "pending")
        self.assertEqual(new.pagination.page, 1)
        self.assertEqual(new.pagination.items_per_page, 10)
        # original untouched
        self.assertEqual(state.pagination.page, 3)

    def test_search_change_resets_page(self) -> None:
        state = ReportViewState(pagination=PaginationParams(page=3))
        new = reduce_report_state(state, SetPagination(PaginationParams(page=3, search="fork")))
        self.assertEqual(new.pagination.page, 1)
        self.assertEqual(new.pagination.search, "fork")

    def test_plain_page_change_is_kept(self) -> None:
        state = ReportViewState(pagination=PaginationParams(page=1, search="fork"))
        new = reduce_report_state(state, SetPagination(PaginationParams(page=4, search="fork")))
        self.assertEqual(new.pagination.page, 4)

    def test_report_type_change_clears_data(self) -> None:
        state = ReportViewState(data=[{"id": 1}], total=1, pagination=PaginationParams(page=2))
        new = reduce_report_state(state, SetReportType("audit-trail"))
        self.assertEqual(new.report_type, "audit-trail")
        self.assertEqual(new.data, [])
        self.assertEqual(new.total, 0)
        self.assertEqual(new.pagination.page, 1)

    def test_failure_keeps_previous_data(self) -> None:
        state = ReportViewState(data=[{"id": 1}], total=1, loading=True)
        new = reduce_report_state(state, FetchFailed("boom"))
        self.assertFalse(new.loading)
        self.assertEqual(new.error, "boom")
        self.assertEqual(new.data, [{"id": 1}])

    def test_unknown_action(self) -> None:
        with self.assertRaises(TypeError):
            reduce_report_state(ReportViewState(), object())


class TestReportView(unittest.TestCase):
    def test_fetch_uses_current_state(self) -> None:
        seen = []

        def loader(state):
            seen.append((state.filters.status, state.pagination.page))
            return ReportPage(data=[{"id": 7}], total=1, stats={"total": 1})

        view = ReportView(loader, state=ReportViewState(pagination=PaginationParams(page=5)))
        state = view.set_filters(ReportFilters(status="pending"))
        self.assertEqual(seen, [("pending", 1)])
        self.assertFalse(state.loading)
        self.assertIsNone(state.error)
        self.assertEqual(state.data, [{"id": 7}])

    def test_upstream_failure_surfaces_message_without_retry(self) -> None:
        calls = []

        def loader(state):
            calls.append(1)
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        view = ReportView(loader)
        state = view.refresh()
        self.assertEqual(state.error, "database is locked")
        self.assertFalse(state.loading)
        self.assertEqual(len(calls), 1)

        view.retry()
        self.assertEqual(len(calls), 2)

    def test_invalid_report_type_is_reported(self) -> None:
        def loader(state):
            raise ValueError("Invalid report type")

        state = ReportView(loader).set_report_type("nope")
        self.assertEqual(state.error, "Invalid report type")

    def test_search_through_the_view_starts_at_page_one(self) -> None:
        seen = []

        def loader(state):
            seen.append((state.pagination.page, state.pagination.search))
            return ReportPage()

        view = ReportView(loader, state=ReportViewState(pagination=PaginationParams(page=4)))
        view.set_pagination(PaginationParams(page=4, search="dock"))
        self.assertEqual(seen, [(1, "dock")])

    def test_on_change_sees_every_transition(self) -> None:
        loading = []
        view = ReportView(lambda s: ReportPage(), on_change=lambda s: loading.append(s.loading))
        view.refresh()
        self.assertEqual(loading, [True, False])


class TestAssignmentBoard(unittest.TestCase):
    def setUp(self) -> None:
        self.board = AssignmentBoard(
            [
                {"id": 1, "status": "pending", "acknowledged_at": None},
                {"id": 2, "status": "overdue", "acknowledged_at": None},
            ]
        )

    def test_reconciles_with_confirmed_row(self) -> None:
        row = self.board.acknowledge(1, lambda: {"acknowledgment_id": 99})
        self.assertEqual(row["status"], "acknowledged")
        self.assertEqual(row["acknowledgment_id"], 99)
        self.assertIsNotNone(row["acknowledged_at"])
        self.assertEqual(self.board.counts()["acknowledged"], 1)

    def test_failed_commit_restores_previous_rows(self) -> None:
        def fail():
            # the speculative flip is visible while the commit runs
            self.assertEqual(self.board.get(2)["status"], "acknowledged")
            raise ValueError("Assignment already acknowledged")

        with self.assertRaises(ValueError):
            self.board.acknowledge(2, fail)
        self.assertEqual(self.board.get(2), {"id": 2, "status": "overdue", "acknowledged_at": None})
        self.assertEqual(self.board.counts(), {"total": 2, "pending": 1, "acknowledged": 0, "overdue": 1})

    def test_unknown_row(self) -> None:
        with self.assertRaises(KeyError):
            self.board.acknowledge(42, lambda: None)


if __name__ == "__main__":
    unittest.main()
