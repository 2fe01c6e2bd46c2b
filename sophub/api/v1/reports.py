# sophub/api/v1/reports.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from sophub.core.auth import get_db
from sophub.core.scoping import company_id_for, require_report_viewer
from sophub.models.user import User
from sophub.schemas.report import EXPORT_PAGE_SIZE, PaginationParams, ReportFilters
from sophub.services.audit import audit_export, ip_from_request
from sophub.services.report_formatting import ExportNotImplemented
from sophub.services.reporting import export_report, run_report

router = APIRouter(prefix="/reports", tags=["reports"])


# -----------------------------
# Query parameter bundles (shared with the tracking list)
# -----------------------------
def report_filters(
    date_range: str = Query(
        "last-30-days",
        description="last-7-days | last-30-days | last-90-days | last-year; anything else means 30 days",
    ),
    status: str = Query("all"),
    department: str = Query("all"),
    priority: str = Query("all"),
    document_type: str = Query("all"),
    user: str = Query("all", description="Assignee user id or 'all'"),
) -> ReportFilters:
    return ReportFilters(
        date_range=date_range,
        status=status,
        department=department,
        priority=priority,
        document_type=document_type,
        user=user,
    )


def pagination_params(
    page: int = Query(1, ge=1),
    items_per_page: int = Query(10, ge=1, le=EXPORT_PAGE_SIZE),
    search: str = Query("", description="Case-insensitive search"),
) -> PaginationParams:
    return PaginationParams(page=page, items_per_page=items_per_page, search=search)


# -----------------------------
# Endpoints
# -----------------------------
@router.get("/{report_type}")
def get_report(
    report_type: str,
    response: Response,
    company_id: Optional[int] = Query(None, description="Super admins only: target company."),
    filters: ReportFilters = Depends(report_filters),
    pagination: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_report_viewer),
) -> Dict[str, Any]:
    """
    One page of a report. ``stats`` describe every row matching the filters
    and search, not only the returned page.
    """
    cid = company_id_for(current_user, company_id)
    try:
        page = run_report(db, report_type, cid, filters, pagination)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    response.headers["X-Total-Count"] = str(page.total)
    return page.model_dump()


@router.get("/{report_type}/export")
def export(
    report_type: str,
    request: Request,
    format: str = Query("csv", pattern="^(csv|excel|pdf)$"),
    company_id: Optional[int] = Query(None, description="Super admins only: target company."),
    filters: ReportFilters = Depends(report_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_report_viewer),
):
    cid = company_id_for(current_user, company_id)
    try:
        content, media_type, row_count = export_report(db, report_type, cid, filters, format)
    except ExportNotImplemented as e:
        raise HTTPException(status_code=501, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_export(
        db,
        company_id=cid,
        user_id=current_user.id,
        report_type=report_type,
        export_format=format,
        row_count=row_count,
        ip=ip_from_request(request),
    )

    headers = {
        "Content-Disposition": f"attachment; filename={report_type}-report.csv",
        "Cache-Control": "no-store",
    }
    return StreamingResponse(iter([content]), media_type=f"{media_type}; charset=utf-8", headers=headers)
