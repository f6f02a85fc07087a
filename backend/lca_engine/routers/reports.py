"""
LCA Report Engine - Reports API Router

Generate, retrieve, export and verify LCA reports.
Stored report content is never edited; export and verification read it back as saved.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import actor_for, get_current_user
from ..database import get_db
from ..models.db_models import AuditAction, AuditResource, ProjectDB, ReportDB, UserDB, UserRole
from ..services.audit_log import AuditLogService, client_ip
from ..services.lca import (
    EXPORT_FORMATS,
    FingerprintUnavailableError,
    ProjectNotFoundError,
    ReportAssembler,
    ReportNotFoundError,
    SqlAlchemyLcaRepository,
    StoredReport,
    content_disposition,
    export_filename,
    render_json,
    render_text,
    verify_fingerprint,
)
from .projects import get_owned_project

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class ReportGenerateRequest(BaseModel):
    title: str = ""
    report_type: str = ""
    description: Optional[str] = None


class ReportResponse(BaseModel):
    """Stored report with its full document."""
    report_id: str
    project_id: str
    title: str
    report_type: str
    fingerprint: str
    created_at: Optional[str] = None
    content: Dict[str, Any]


class ReportListItem(BaseModel):
    report_id: str
    title: str
    report_type: str
    fingerprint: str
    data_points: int
    sustainability_score: int
    generated_by: Optional[str] = None
    created_at: Optional[str] = None


class VerifyResponse(BaseModel):
    report_id: str
    fingerprint: str
    verified: bool


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_accessible_report(db: Session, report_id: str, user: UserDB) -> StoredReport:
    """Load a stored report whose project the user owns (admins see all). 404 otherwise."""
    try:
        report = SqlAlchemyLcaRepository(db).get_report(report_id)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")

    if user.role != UserRole.ADMIN.value:
        owner_id = db.query(ProjectDB.created_by).filter(ProjectDB.id == report.project_id).scalar()
        if owner_id != user.id:
            raise HTTPException(status_code=404, detail="Report not found")
    return report


def _report_response(report: StoredReport) -> ReportResponse:
    return ReportResponse(
        report_id=report.report_id,
        project_id=report.project_id,
        title=report.title,
        report_type=report.report_type,
        fingerprint=report.fingerprint,
        created_at=report.created_at.isoformat() if report.created_at else None,
        content=report.content,
    )


def is_report_verified(report) -> bool:
    """
    Stored content hashes to its own fingerprint and matches the indexed column.
    Accepts a StoredReport or a ReportDB row.
    """
    content = report.content or {}
    if content.get("metadata", {}).get("fingerprint") != report.fingerprint:
        return False
    return verify_fingerprint(content)


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/projects/{project_id}/reports", response_model=ReportResponse,
             status_code=status.HTTP_201_CREATED)
async def generate_report(
    project_id: str,
    request: ReportGenerateRequest,
    http_request: Request,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Generate and persist a report for a project.

    Pipeline:
    1. Validate title and report type
    2. Load measurements and assemble the fingerprinted document
    3. Store it unchanged with an audit entry
    """
    if not request.title.strip() or not request.report_type.strip():
        raise HTTPException(status_code=400, detail="Please fill in all required fields")

    get_owned_project(db, project_id, current_user)
    repo = SqlAlchemyLcaRepository(db)

    try:
        document = ReportAssembler(repo).generate(
            project_id,
            report_type=request.report_type.strip(),
            title=request.title.strip(),
            description=request.description,
            actor=actor_for(current_user),
            generated_at=datetime.now(timezone.utc),
        )
        report_id = repo.save_report(project_id, document)
        AuditLogService(db).record(
            current_user, AuditAction.CREATE, AuditResource.REPORT, report_id,
            details={"project_id": project_id, "report_type": document.metadata.report_type},
            ip_address=client_ip(http_request),
        )
        db.commit()
    except ProjectNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Project not found")
    except FingerprintUnavailableError as e:
        db.rollback()
        logger.error(f"Fingerprint unavailable for project {project_id}: {e}")
        raise HTTPException(status_code=503, detail="Report fingerprinting is unavailable")
    except Exception as e:
        db.rollback()
        logger.error(f"Error generating report for project {project_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error generating report: {e}")

    logger.info(f"Report {report_id} saved for project {project_id} by {current_user.email}")
    return _report_response(repo.get_report(report_id))


@router.get("/projects/{project_id}/reports", response_model=List[ReportListItem])
async def list_reports(
    project_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List reports for a project, newest first."""
    get_owned_project(db, project_id, current_user)

    reports = db.query(ReportDB).filter(
        ReportDB.project_id == project_id
    ).order_by(ReportDB.created_at.desc()).all()

    items = []
    for r in reports:
        content = r.content or {}
        metadata = content.get("metadata", {})
        items.append(ReportListItem(
            report_id=r.id,
            title=r.title,
            report_type=r.report_type,
            fingerprint=r.fingerprint,
            data_points=metadata.get("data_points", 0),
            sustainability_score=content.get("executive_summary", {}).get("sustainability_score", 0),
            generated_by=metadata.get("generated_by"),
            created_at=r.created_at.isoformat() if r.created_at else None,
        ))
    return items


@router.get("/reports/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a stored report with its full document."""
    return _report_response(get_accessible_report(db, report_id, current_user))


@router.get("/reports/{report_id}/export")
async def export_report(
    report_id: str,
    format: str = Query("json"),
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Download a report as JSON or plain text."""
    if format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported export format: {format}. Use one of: {', '.join(EXPORT_FORMATS)}"
        )

    report = get_accessible_report(db, report_id, current_user)
    content = report.content
    body = render_json(content) if format == "json" else render_text(content)
    _, media_type = EXPORT_FORMATS[format]
    filename = export_filename(report.title, report.report_id, format)

    logger.info(f"Report {report_id} exported as {format}")
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.get("/reports/{report_id}/verify", response_model=VerifyResponse)
async def verify_report(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Recompute the fingerprint of the stored content and compare."""
    report = get_accessible_report(db, report_id, current_user)

    try:
        verified = is_report_verified(report)
    except FingerprintUnavailableError as e:
        logger.error(f"Fingerprint unavailable while verifying report {report_id}: {e}")
        raise HTTPException(status_code=503, detail="Report fingerprinting is unavailable")

    if not verified:
        logger.warning(f"Report {report_id} failed fingerprint verification")
    return VerifyResponse(report_id=report.report_id, fingerprint=report.fingerprint, verified=verified)
