# sophub/services/view_state.py
"""
Explicit state for report views and a user's assignment board.

State objects are immutable; ``reduce_report_state`` is the only way a
report state changes. ``ReportView`` is the effect boundary: it performs
the fetch and feeds the outcome back through the reducer. No fetch is ever
retried automatically.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from sophub.core.errors import upstream_message
from sophub.core.timeutils import utcnow
from sophub.schemas.report import PaginationParams, ReportFilters, ReportPage
from sophub.services.status import ACKNOWLEDGED

log = logging.getLogger("sophub.services.view_state")


class ReportViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    report_type: str = "acknowledgment"
    filters: ReportFilters = Field(default_factory=ReportFilters)
    pagination: PaginationParams = Field(default_factory=PaginationParams)
    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    stats: Dict[str, Any] = Field(default_factory=dict)
    loading: bool = False
    error: Optional[str] = None


# -----------------------------
# Actions
# -----------------------------
@dataclass(frozen=True)
class SetReportType:
    report_type: str


@dataclass(frozen=True)
class SetFilters:
    filters: ReportFilters


@dataclass(frozen=True)
class SetPagination:
    pagination: PaginationParams


@dataclass(frozen=True)
class FetchStarted:
    pass


@dataclass(frozen=True)
class FetchSucceeded:
    page: ReportPage


@dataclass(frozen=True)
class FetchFailed:
    message: str


ReportAction = Union[SetReportType, SetFilters, SetPagination, FetchStarted, FetchSucceeded, FetchFailed]


def _first_page(p: PaginationParams) -> PaginationParams:
    return p.model_copy(update={"page": 1})


def reduce_report_state(state: ReportViewState, action: ReportAction) -> ReportViewState:
    """Pure transition: (state, action) -> new state."""
    if isinstance(action, SetReportType):
        return state.model_copy(
            update={
                "report_type": action.report_type,
                "pagination": _first_page(state.pagination),
                "data": [],
                "total": 0,
                "stats": {},
                "error": None,
            }
        )
    if isinstance(action, SetFilters):
        # any filter change starts over at page 1
        return state.model_copy(
            update={"filters": action.filters, "pagination": _first_page(state.pagination)}
        )
    if isinstance(action, SetPagination):
        new = action.pagination
        if new.search != state.pagination.search:
            new = _first_page(new)
        return state.model_copy(update={"pagination": new})
    if isinstance(action, FetchStarted):
        return state.model_copy(update={"loading": True, "error": None})
    if isinstance(action, FetchSucceeded):
        return state.model_copy(
            update={
                "loading": False,
                "error": None,
                "data": list(action.page.data),
                "total": action.page.total,
                "stats": dict(action.page.stats),
            }
        )
    if isinstance(action, FetchFailed):
        return state.model_copy(update={"loading": False, "error": action.message})
    raise TypeError(f"Unknown report action: {action!r}")


class ReportView:
    """
    Holds one report view's state. ``loader`` receives the current state and
    returns a ReportPage (typically a closure over ``reporting.run_report``).
    Upstream and validation failures become ``state.error``; the caller
    decides when to ``retry``.
    """

    def __init__(
        self,
        loader: Callable[[ReportViewState], ReportPage],
        state: Optional[ReportViewState] = None,
        on_change: Optional[Callable[[ReportViewState], None]] = None,
    ) -> None:
        self._loader = loader
        self._on_change = on_change
        self.state = state or ReportViewState()

    def dispatch(self, action: ReportAction) -> ReportViewState:
        self.state = reduce_report_state(self.state, action)
        if self._on_change is not None:
            self._on_change(self.state)
        return self.state

    def refresh(self) -> ReportViewState:
        self.dispatch(FetchStarted())
        try:
            page = self._loader(self.state)
        except SQLAlchemyError as exc:
            log.warning("report fetch failed (%s): %s", self.state.report_type, upstream_message(exc))
            return self.dispatch(FetchFailed(upstream_message(exc)))
        except (ValueError, NotImplementedError) as exc:
            log.warning("report fetch rejected (%s): %s", self.state.report_type, exc)
            return self.dispatch(FetchFailed(str(exc)))
        return self.dispatch(FetchSucceeded(page))

    retry = refresh

    def set_report_type(self, report_type: str) -> ReportViewState:
        self.dispatch(SetReportType(report_type))
        return self.refresh()

    def set_filters(self, filters: ReportFilters) -> ReportViewState:
        self.dispatch(SetFilters(filters))
        return self.refresh()

    def set_pagination(self, pagination: PaginationParams) -> ReportViewState:
        self.dispatch(SetPagination(pagination))
        return self.refresh()


# -----------------------------
# Speculative acknowledge
# -----------------------------
class AssignmentBoard:
    """
    A user's assignment list with speculative acknowledge: the row flips to
    acknowledged immediately, the commit runs, and the row is reconciled with
    what the commit returned or restored if it failed.
    """

    def __init__(self, rows: List[Dict[str, Any]]) -> None:
        self.rows: List[Dict[str, Any]] = [dict(r) for r in rows]

    def _index(self, assignment_id: int) -> int:
        for i, row in enumerate(self.rows):
            if row["id"] == assignment_id:
                return i
        raise KeyError(assignment_id)

    def get(self, assignment_id: int) -> Dict[str, Any]:
        return self.rows[self._index(assignment_id)]

    def acknowledge(
        self,
        assignment_id: int,
        commit: Callable[[], Optional[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        idx = self._index(assignment_id)
        snapshot = copy.deepcopy(self.rows)

        speculative = dict(self.rows[idx])
        speculative["status"] = ACKNOWLEDGED
        speculative["acknowledged_at"] = utcnow()
        self.rows[idx] = speculative

        try:
            confirmed = commit()
        except Exception:
            self.rows = snapshot
            raise

        if confirmed:
            self.rows[idx] = {**speculative, **confirmed}
        return self.rows[idx]

    def counts(self) -> Dict[str, int]:
        out = {"total": len(self.rows), "pending": 0, "acknowledged": 0, "overdue": 0}
        for row in self.rows:
            if row.get("status") in out:
                out[row["status"]] += 1
        return out
