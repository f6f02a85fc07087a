"""
LCA Report Engine - Admin Router
Console over every user, project, stored report and audit log entry.
Reports, projects and logs are read-only here; the only mutation is a user's role.
"""
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import (
    UserDB,
    UserRole,
    ProjectDB,
    ProjectStatus,
    MetalType,
    MeasurementDB,
    ReportDB,
    AuditLogDB,
    AuditAction,
    AuditResource,
)
from ..models.lca import ReportType
from ..auth import require_admin
from ..services.audit_log import AuditLogService, client_ip
from .reports import is_report_verified

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

TOP_CREATORS_LIMIT = 5
RECENT_LIMIT = 5
TOP_ORGANIZATIONS_LIMIT = 5
DEFAULT_LOG_LIMIT = 100


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class AdminReportItem(BaseModel):
    """Report item for admin list view."""
    report_id: str
    title: str
    report_type: str
    project_id: str
    project_name: str
    metal_type: str
    creator_email: Optional[str] = None
    creator_name: Optional[str] = None
    fingerprint: str
    created_at: Optional[str] = None


class CreatorCount(BaseModel):
    email: str
    full_name: Optional[str] = None
    report_count: int


class AdminReportStats(BaseModel):
    """Report statistics for the admin console."""
    total_reports: int
    by_type: Dict[str, int]
    verified: int
    unverified: int
    top_creators: List[CreatorCount]


class AdminUserItem(BaseModel):
    """User item for admin list view."""
    id: str
    email: str
    full_name: Optional[str] = None
    organization: Optional[str] = None
    role: str
    created_at: str
    project_count: int
    report_count: int


class RoleUpdateRequest(BaseModel):
    role: UserRole


class RecentUser(BaseModel):
    email: str
    full_name: Optional[str] = None
    created_at: Optional[str] = None


class AdminUserStats(BaseModel):
    """Role and organization distribution."""
    total_users: int
    by_role: Dict[str, int]
    by_organization: Dict[str, int]
    recent_registrations: List[RecentUser]


class AdminProjectItem(BaseModel):
    """Project item for admin list view."""
    project_id: str
    name: str
    description: Optional[str] = None
    metal_type: str
    status: str
    creator_email: Optional[str] = None
    creator_name: Optional[str] = None
    measurement_count: int
    created_at: Optional[str] = None


class RecentProject(BaseModel):
    project_id: str
    name: str
    created_at: Optional[str] = None


class ProjectCreatorCount(BaseModel):
    email: str
    full_name: Optional[str] = None
    project_count: int


class AdminProjectStats(BaseModel):
    """Project statistics for the admin console."""
    total_projects: int
    by_status: Dict[str, int]
    by_metal_type: Dict[str, int]
    recent_projects: List[RecentProject]
    top_creators: List[ProjectCreatorCount]


class AuditLogItem(BaseModel):
    """Audit log entry for admin list view."""
    id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[dict] = None
    ip_address: Optional[str] = None
    created_at: Optional[str] = None


class AuditLogResponse(BaseModel):
    """Filtered audit log plus counts over the whole log."""
    logs: List[AuditLogItem]
    total: int
    by_action: Dict[str, int]
    by_resource: Dict[str, int]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _user_item(db: Session, user: UserDB) -> AdminUserItem:
    project_count = db.query(func.count(ProjectDB.id)).filter(
        ProjectDB.created_by == user.id
    ).scalar() or 0

    report_count = db.query(func.count(ReportDB.id)).filter(
        ReportDB.generated_by == user.id
    ).scalar() or 0

    return AdminUserItem(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        organization=user.organization,
        role=user.role,
        created_at=user.created_at.isoformat() if user.created_at else "",
        project_count=project_count,
        report_count=report_count,
    )


def _counts(rows, known) -> Dict[str, int]:
    """Group-by counts with every known key present, plus any others stored."""
    counts = {k.value: 0 for k in known}
    for key, count in rows:
        if key is not None:
            counts[key] = count
    return counts


# =============================================================================
# API ENDPOINTS: REPORTS
# =============================================================================

@router.get("/reports", response_model=List[AdminReportItem])
async def list_all_reports(
    search: Optional[str] = None,
    report_type: str = Query("all"),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    List every report, newest first.
    search matches report title or project name, case-insensitive.
    """
    query = db.query(ReportDB, ProjectDB, UserDB).join(
        ProjectDB, ReportDB.project_id == ProjectDB.id
    ).outerjoin(
        UserDB, ReportDB.generated_by == UserDB.id
    )

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (ReportDB.title.ilike(search_term)) |
            (ProjectDB.name.ilike(search_term))
        )

    if report_type != "all":
        query = query.filter(ReportDB.report_type == report_type)

    rows = query.order_by(desc(ReportDB.created_at)).all()

    return [
        AdminReportItem(
            report_id=report.id,
            title=report.title,
            report_type=report.report_type,
            project_id=project.id,
            project_name=project.name,
            metal_type=project.metal_type,
            creator_email=user.email if user else None,
            creator_name=user.full_name if user else None,
            fingerprint=report.fingerprint,
            created_at=report.created_at.isoformat() if report.created_at else None,
        )
        for report, project, user in rows
    ]


@router.get("/reports/stats", response_model=AdminReportStats)
async def get_report_stats(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Report totals by type, fingerprint verification counts and top creators.
    Verification recomputes every stored fingerprint.
    """
    type_counts = db.query(
        ReportDB.report_type,
        func.count(ReportDB.id)
    ).group_by(ReportDB.report_type).all()

    by_type = _counts(type_counts, ReportType)

    verified = 0
    unverified = 0
    for report in db.query(ReportDB).all():
        if is_report_verified(report):
            verified += 1
        else:
            unverified += 1
            logger.warning(f"Report {report.id} failed fingerprint verification")

    creators = db.query(
        UserDB.email,
        UserDB.full_name,
        func.count(ReportDB.id).label("report_count")
    ).join(
        ReportDB, ReportDB.generated_by == UserDB.id
    ).group_by(UserDB.id, UserDB.email, UserDB.full_name).order_by(
        desc("report_count"), UserDB.email
    ).limit(TOP_CREATORS_LIMIT).all()

    return AdminReportStats(
        total_reports=verified + unverified,
        by_type=by_type,
        verified=verified,
        unverified=unverified,
        top_creators=[
            CreatorCount(email=email, full_name=full_name, report_count=count)
            for email, full_name, count in creators
        ],
    )


# =============================================================================
# API ENDPOINTS: USERS
# =============================================================================

@router.get("/users", response_model=List[AdminUserItem])
async def list_users(
    search: Optional[str] = None,
    role: str = Query("all"),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    List users, newest first, with project and report counts.
    search matches email, full name or organization, case-insensitive.
    """
    query = db.query(UserDB)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (UserDB.email.ilike(search_term)) |
            (UserDB.full_name.ilike(search_term)) |
            (UserDB.organization.ilike(search_term))
        )

    if role != "all":
        query = query.filter(UserDB.role == role)

    users = query.order_by(desc(UserDB.created_at), UserDB.email).all()
    return [_user_item(db, user) for user in users]


@router.get("/users/stats", response_model=AdminUserStats)
async def get_user_stats(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """Users per role, largest organizations and latest registrations."""
    total_users = db.query(func.count(UserDB.id)).scalar() or 0

    role_counts = db.query(UserDB.role, func.count(UserDB.id)).group_by(UserDB.role).all()

    organizations = db.query(
        UserDB.organization,
        func.count(UserDB.id).label("user_count")
    ).filter(
        UserDB.organization.isnot(None),
        UserDB.organization != ""
    ).group_by(UserDB.organization).order_by(
        desc("user_count"), UserDB.organization
    ).limit(TOP_ORGANIZATIONS_LIMIT).all()

    recent = db.query(UserDB).order_by(
        desc(UserDB.created_at), UserDB.email
    ).limit(RECENT_LIMIT).all()

    return AdminUserStats(
        total_users=total_users,
        by_role=_counts(role_counts, UserRole),
        by_organization={org: count for org, count in organizations},
        recent_registrations=[
            RecentUser(
                email=u.email,
                full_name=u.full_name,
                created_at=u.created_at.isoformat() if u.created_at else None,
            )
            for u in recent
        ],
    )


@router.patch("/users/{user_id}/role", response_model=AdminUserItem)
async def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """Change a user's role. Admins cannot demote themselves."""
    user = db.query(UserDB).filter(UserDB.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == admin.id and request.role != UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admins cannot remove their own admin role")

    previous = user.role
    try:
        user.role = request.role.value
        AuditLogService(db).record(
            admin, AuditAction.UPDATE, AuditResource.USER, user.id,
            details={"role": {"from": previous, "to": user.role}},
            ip_address=client_ip(http_request),
        )
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update role for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update user role")

    logger.info(f"Admin {admin.email} set role of {user.email} from {previous} to {user.role}")
    return _user_item(db, user)


# =============================================================================
# API ENDPOINTS: PROJECTS
# =============================================================================

@router.get("/projects", response_model=List[AdminProjectItem])
async def list_all_projects(
    search: Optional[str] = None,
    status: str = Query("all"),
    metal_type: str = Query("all"),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    List every project, newest first, with its creator.
    search matches project name or description, case-insensitive.
    """
    query = db.query(ProjectDB, UserDB).outerjoin(
        UserDB, ProjectDB.created_by == UserDB.id
    )

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (ProjectDB.name.ilike(search_term)) |
            (ProjectDB.description.ilike(search_term))
        )

    if status != "all":
        query = query.filter(ProjectDB.status == status)

    if metal_type != "all":
        query = query.filter(ProjectDB.metal_type == metal_type)

    rows = query.order_by(desc(ProjectDB.created_at), ProjectDB.name).all()

    measurement_counts = dict(
        db.query(MeasurementDB.project_id, func.count(MeasurementDB.id))
        .group_by(MeasurementDB.project_id)
        .all()
    )

    return [
        AdminProjectItem(
            project_id=project.id,
            name=project.name,
            description=project.description,
            metal_type=project.metal_type,
            status=project.status or ProjectStatus.ACTIVE.value,
            creator_email=user.email if user else None,
            creator_name=user.full_name if user else None,
            measurement_count=measurement_counts.get(project.id, 0),
            created_at=project.created_at.isoformat() if project.created_at else None,
        )
        for project, user in rows
    ]


@router.get("/projects/stats", response_model=AdminProjectStats)
async def get_project_stats(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """Projects per status and metal type, latest projects and top creators."""
    total_projects = db.query(func.count(ProjectDB.id)).scalar() or 0

    status_counts = db.query(
        ProjectDB.status, func.count(ProjectDB.id)
    ).group_by(ProjectDB.status).all()

    metal_counts = db.query(
        ProjectDB.metal_type, func.count(ProjectDB.id)
    ).group_by(ProjectDB.metal_type).all()

    recent = db.query(ProjectDB).order_by(
        desc(ProjectDB.created_at), ProjectDB.name
    ).limit(RECENT_LIMIT).all()

    creators = db.query(
        UserDB.email,
        UserDB.full_name,
        func.count(ProjectDB.id).label("project_count")
    ).join(
        ProjectDB, ProjectDB.created_by == UserDB.id
    ).group_by(UserDB.id, UserDB.email, UserDB.full_name).order_by(
        desc("project_count"), UserDB.email
    ).limit(TOP_CREATORS_LIMIT).all()

    return AdminProjectStats(
        total_projects=total_projects,
        by_status=_counts(status_counts, ProjectStatus),
        by_metal_type=_counts(metal_counts, MetalType),
        recent_projects=[
            RecentProject(
                project_id=p.id,
                name=p.name,
                created_at=p.created_at.isoformat() if p.created_at else None,
            )
            for p in recent
        ],
        top_creators=[
            ProjectCreatorCount(email=email, full_name=full_name, project_count=count)
            for email, full_name, count in creators
        ],
    )


# =============================================================================
# API ENDPOINTS: AUDIT LOG
# =============================================================================

@router.get("/logs", response_model=AuditLogResponse)
async def list_audit_logs(
    search: Optional[str] = None,
    action: str = Query("all"),
    resource_type: str = Query("all"),
    limit: int = Query(DEFAULT_LOG_LIMIT, ge=1, le=1000),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Newest audit entries first.
    search matches action, resource type, user name or email, or IP address.
    Counts per action and resource cover the whole log, not just this page.
    """
    query = db.query(AuditLogDB, UserDB).outerjoin(
        UserDB, AuditLogDB.user_id == UserDB.id
    )

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (AuditLogDB.action.ilike(search_term)) |
            (AuditLogDB.resource_type.ilike(search_term)) |
            (UserDB.full_name.ilike(search_term)) |
            (UserDB.email.ilike(search_term)) |
            (AuditLogDB.ip_address.ilike(search_term))
        )

    if action != "all":
        query = query.filter(AuditLogDB.action == action)

    if resource_type != "all":
        query = query.filter(AuditLogDB.resource_type == resource_type)

    total = query.count()
    rows = query.order_by(desc(AuditLogDB.created_at)).limit(limit).all()

    action_counts = db.query(
        AuditLogDB.action, func.count(AuditLogDB.id)
    ).group_by(AuditLogDB.action).all()

    resource_counts = db.query(
        AuditLogDB.resource_type, func.count(AuditLogDB.id)
    ).group_by(AuditLogDB.resource_type).all()

    return AuditLogResponse(
        logs=[
            AuditLogItem(
                id=entry.id,
                user_id=entry.user_id,
                user_email=user.email if user else None,
                user_name=user.full_name if user else None,
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                details=entry.details,
                ip_address=entry.ip_address,
                created_at=entry.created_at.isoformat() if entry.created_at else None,
            )
            for entry, user in rows
        ],
        total=total,
        by_action=_counts(action_counts, AuditAction),
        by_resource=_counts(resource_counts, AuditResource),
    )
