"""
LCA Report Engine - Projects API Router

Project management, measurement entry/import and the analysis dashboard.
All endpoints require authentication.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models.db_models import (
    AuditAction,
    AuditResource,
    MeasurementDB,
    ProjectDB,
    ProjectStatus,
    ReportDB,
    UserDB,
    UserRole,
)
from ..models.lca import MAX_MEASUREMENT_VALUE, Measurement, check_timestamp_in_range
from ..services.audit_log import AuditLogService, client_ip
from ..services.lca import (
    ALL_STAGES,
    MeasurementIngestError,
    SqlAlchemyLcaRepository,
    build_dashboard,
    parse_measurements,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class ProjectCreateRequest(BaseModel):
    name: str
    metal_type: str
    description: Optional[str] = None

    @field_validator('name', 'metal_type')
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('must not be empty')
        return v.strip()


class ProjectResponse(BaseModel):
    project_id: str
    name: str
    description: Optional[str] = None
    metal_type: str
    status: str
    created_at: str


class ProjectStatusUpdateRequest(BaseModel):
    status: ProjectStatus


class ProjectDetailResponse(ProjectResponse):
    measurement_count: int
    report_count: int


class MeasurementIn(BaseModel):
    """Measurement as submitted by clients."""
    process_stage: str
    energy_consumption: float = Field(0.0, ge=0, le=MAX_MEASUREMENT_VALUE, allow_inf_nan=False)
    emissions_co2: float = Field(0.0, ge=0, le=MAX_MEASUREMENT_VALUE, allow_inf_nan=False)
    water_usage: float = Field(0.0, ge=0, le=MAX_MEASUREMENT_VALUE, allow_inf_nan=False)
    waste_generated: float = Field(0.0, ge=0, le=MAX_MEASUREMENT_VALUE, allow_inf_nan=False)
    recycled_content: float = Field(0.0, ge=0, le=100, allow_inf_nan=False)
    recyclability: float = Field(0.0, ge=0, le=100, allow_inf_nan=False)
    created_at: Optional[datetime] = None

    @field_validator('process_stage')
    @classmethod
    def stage_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('process_stage must not be empty')
        return v.strip()

    @field_validator('created_at')
    @classmethod
    def created_at_in_range(cls, v):
        check_timestamp_in_range('created_at', v)
        return v


class MeasurementResponse(BaseModel):
    measurement_id: Optional[str] = None
    process_stage: str
    energy_consumption: float
    emissions_co2: float
    water_usage: float
    waste_generated: float
    recycled_content: float
    recyclability: float
    created_at: Optional[str] = None


class ImportRequest(BaseModel):
    format: str  # csv or json
    content: str


class RejectedRowResponse(BaseModel):
    row_number: int
    reason: str


class MeasurementImportResponse(BaseModel):
    accepted: int
    rejected: List[RejectedRowResponse] = []


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_owned_project(db: Session, project_id: str, user: UserDB) -> ProjectDB:
    """Fetch a project the user may access (owner or admin). 404 otherwise."""
    query = db.query(ProjectDB).filter(ProjectDB.id == project_id)
    if user.role != UserRole.ADMIN.value:
        query = query.filter(ProjectDB.created_by == user.id)
    project = query.first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _project_response(project: ProjectDB) -> ProjectResponse:
    return ProjectResponse(
        project_id=project.id,
        name=project.name,
        description=project.description,
        metal_type=project.metal_type,
        status=project.status or ProjectStatus.ACTIVE.value,
        created_at=project.created_at.isoformat() if project.created_at else "",
    )


def _store_measurements(
    db: Session,
    project_id: str,
    measurements: List[Measurement],
    user: UserDB,
    action: AuditAction,
    resource_type: AuditResource,
    details: dict,
    ip_address: Optional[str] = None,
) -> int:
    """Store measurements and their audit entry in one transaction."""
    try:
        stored = SqlAlchemyLcaRepository(db).add_measurements(project_id, measurements)
        AuditLogService(db).record(
            user, action, resource_type, project_id,
            details={**details, "measurements": stored},
            ip_address=ip_address,
        )
        db.commit()
    except IntegrityError as e:
        # Another batch claimed the same sequence numbers first
        db.rollback()
        logger.warning(f"Concurrent measurement write for project {project_id}: {e}")
        raise HTTPException(
            status_code=409,
            detail="Measurements were added concurrently to this project; retry the request"
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error storing measurements for project {project_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error storing measurements: {e}")
    logger.info(f"Stored {stored} measurements for project {project_id}")
    return stored


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreateRequest,
    http_request: Request,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new LCA project owned by the authenticated user."""
    project = ProjectDB(
        id=str(uuid4()),
        name=request.name,
        description=request.description,
        metal_type=request.metal_type,
        status=ProjectStatus.ACTIVE.value,
        created_by=current_user.id,
    )
    db.add(project)
    AuditLogService(db).record(
        current_user, AuditAction.CREATE, AuditResource.PROJECT, project.id,
        details={"name": project.name, "metal_type": project.metal_type},
        ip_address=client_ip(http_request),
    )
    db.commit()
    db.refresh(project)

    logger.info(f"Project created: {project.id} ({project.metal_type}) by {current_user.email}")
    return _project_response(project)


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the authenticated user's projects, newest first."""
    projects = db.query(ProjectDB).filter(
        ProjectDB.created_by == current_user.id
    ).order_by(ProjectDB.created_at.desc()).all()
    return [_project_response(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get project detail with measurement and report counts."""
    project = get_owned_project(db, project_id, current_user)

    measurement_count = db.query(func.count(MeasurementDB.id)).filter(
        MeasurementDB.project_id == project_id
    ).scalar() or 0
    report_count = db.query(func.count(ReportDB.id)).filter(
        ReportDB.project_id == project_id
    ).scalar() or 0

    return ProjectDetailResponse(
        **_project_response(project).model_dump(),
        measurement_count=measurement_count,
        report_count=report_count,
    )


@router.patch("/{project_id}/status", response_model=ProjectResponse)
async def update_project_status(
    project_id: str,
    request: ProjectStatusUpdateRequest,
    http_request: Request,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Move a project between draft, active, completed and archived."""
    project = get_owned_project(db, project_id, current_user)
    previous = project.status or ProjectStatus.ACTIVE.value

    try:
        project.status = request.status.value
        AuditLogService(db).record(
            current_user, AuditAction.UPDATE, AuditResource.PROJECT, project.id,
            details={"status": {"from": previous, "to": project.status}},
            ip_address=client_ip(http_request),
        )
        db.commit()
        db.refresh(project)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update status of project {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update project status")

    logger.info(f"Project {project_id} status {previous} -> {project.status} by {current_user.email}")
    return _project_response(project)


@router.get("/{project_id}/measurements",response_model=List[MeasurementResponse])
async def list_measurements(
    project_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List a project's measurements in stored order."""
    get_owned_project(db, project_id, current_user)
    measurements = SqlAlchemyLcaRepository(db).list_measurements(project_id)
    return [
        MeasurementResponse(
            measurement_id=m.measurement_id,
            process_stage=m.stage,
            energy_consumption=m.energy_consumption,
            emissions_co2=m.emissions_co2,
            water_usage=m.water_usage,
            waste_generated=m.waste_generated,
            recycled_content=m.recycled_content,
            recyclability=m.recyclability,
            created_at=m.created_at.isoformat() if m.created_at else None,
        )
        for m in measurements
    ]


@router.post("/{project_id}/measurements", response_model=MeasurementImportResponse,
             status_code=status.HTTP_201_CREATED)
async def add_measurements(
    project_id: str,
    measurements: List[MeasurementIn],
    http_request: Request,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record measurements for a project. Values are validated before storage."""
    get_owned_project(db, project_id, current_user)

    rows = [
        Measurement(
            stage=m.process_stage,
            energy_consumption=m.energy_consumption,
            emissions_co2=m.emissions_co2,
            water_usage=m.water_usage,
            waste_generated=m.waste_generated,
            recycled_content=m.recycled_content,
            recyclability=m.recyclability,
            created_at=m.created_at,
        )
        for m in measurements
    ]
    stored = _store_measurements(
        db, project_id, rows, current_user,
        AuditAction.UPDATE, AuditResource.PROJECT, {"source": "entry"},
        ip_address=client_ip(http_request),
    )
    return MeasurementImportResponse(accepted=stored)


@router.post("/{project_id}/measurements/import", response_model=MeasurementImportResponse,
             status_code=status.HTTP_201_CREATED)
async def import_measurements(
    project_id: str,
    request: ImportRequest,
    http_request: Request,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Import measurements from CSV or JSON text.
    Invalid rows are reported back; valid rows are stored.
    """
    get_owned_project(db, project_id, current_user)

    try:
        result = parse_measurements(request.content, request.format)
    except MeasurementIngestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    stored = 0
    if result.measurements:
        stored = _store_measurements(
            db, project_id, result.measurements, current_user,
            AuditAction.UPLOAD, AuditResource.UPLOAD,
            {"format": request.format.lower(), "rejected": len(result.rejected)},
            ip_address=client_ip(http_request),
        )
    return MeasurementImportResponse(
        accepted=stored,
        rejected=[RejectedRowResponse(**r.to_dict()) for r in result.rejected],
    )


@router.get("/{project_id}/analysis")
async def get_analysis(
    project_id: str,
    stage: str = Query(ALL_STAGES),
    time_range: str = Query("all"),
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Dashboard view: rounded headline metrics and per-stage chart rows.
    stage narrows the chart rows; time_range (all, 7d, 30d, 90d) bounds both.
    """
    get_owned_project(db, project_id, current_user)
    measurements = SqlAlchemyLcaRepository(db).list_measurements(project_id)

    try:
        view = build_dashboard(
            measurements,
            now=datetime.now(timezone.utc),
            stage_filter=stage,
            time_range=time_range,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return view.to_dict()
