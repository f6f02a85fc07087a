"""
LCA Data Access

Interfaces the report engine depends on, and their SQLAlchemy implementation.
The engine receives a source explicitly; there is no module-level client.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import MeasurementDB, ProjectDB, ReportDB
from ...models.lca import Measurement, ReportDocument


class ProjectNotFoundError(LookupError):
    """Raised when a project id does not resolve."""


class ReportNotFoundError(LookupError):
    """Raised when a report id does not resolve."""


@dataclass(frozen=True)
class ProjectRecord:
    project_id: str
    name: str
    metal_type: str


@dataclass(frozen=True)
class StoredReport:
    """A persisted report, content returned exactly as saved."""
    report_id: str
    project_id: str
    title: str
    report_type: str
    fingerprint: str
    content: Dict[str, Any]
    created_at: Optional[datetime] = None


class MeasurementSource(Protocol):
    def get_project(self, project_id: str) -> ProjectRecord: ...

    def list_measurements(self, project_id: str) -> List[Measurement]: ...


class ReportStore(Protocol):
    def save_report(self, project_id: str, document: ReportDocument) -> str: ...

    def get_report(self, report_id: str) -> StoredReport: ...


def to_naive_utc(value: datetime) -> datetime:
    """Column timestamps are naive UTC; aware values are converted, naive ones kept."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def measurement_from_row(row: MeasurementDB) -> Measurement:
    """Convert an lca_data row into an engine Measurement."""
    return Measurement(
        measurement_id=row.id,
        stage=row.process_stage,
        energy_consumption=row.energy_consumption or 0.0,
        emissions_co2=row.emissions_co2 or 0.0,
        water_usage=row.water_usage or 0.0,
        waste_generated=row.waste_generated or 0.0,
        recycled_content=row.recycled_content or 0.0,
        recyclability=row.recyclability or 0.0,
        created_at=row.created_at,
    )


def stored_report_from_row(row: ReportDB) -> StoredReport:
    return StoredReport(
        report_id=row.id,
        project_id=row.project_id,
        title=row.title,
        report_type=row.report_type,
        fingerprint=row.fingerprint,
        content=row.content or {},
        created_at=row.created_at,
    )


class SqlAlchemyLcaRepository:
    """
    MeasurementSource and ReportStore over the ORM models.

    Usage:
        repo = SqlAlchemyLcaRepository(db)
        assembler = ReportAssembler(repo)
    """

    def __init__(self, db: Session):
        self.db = db

    def get_project(self, project_id: str) -> ProjectRecord:
        project = self.db.query(ProjectDB).filter(ProjectDB.id == project_id).first()
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return ProjectRecord(project_id=project.id, name=project.name, metal_type=project.metal_type)

    def list_measurements(self, project_id: str) -> List[Measurement]:
        rows = (
            self.db.query(MeasurementDB)
            .filter(MeasurementDB.project_id == project_id)
            .order_by(MeasurementDB.created_at.asc(), MeasurementDB.seq.asc())
            .all()
        )
        return [measurement_from_row(r) for r in rows]

    def last_seq(self, project_id: str) -> int:
        return self.db.query(func.max(MeasurementDB.seq)).filter(
            MeasurementDB.project_id == project_id
        ).scalar() or 0

    def add_measurements(self, project_id: str, measurements: List[Measurement]) -> int:
        """
        Persist measurements for a project, preserving their order. Caller commits.

        Sequence numbers continue from the stored maximum. (project_id, seq) is
        unique, so a concurrent batch that read the same maximum fails with
        IntegrityError instead of interleaving.
        """
        last_seq = self.last_seq(project_id)
        for offset, m in enumerate(measurements, start=1):
            row = MeasurementDB(
                id=m.measurement_id or str(uuid4()),
                project_id=project_id,
                seq=last_seq + offset,
                process_stage=m.stage,
                energy_consumption=m.energy_consumption,
                emissions_co2=m.emissions_co2,
                water_usage=m.water_usage,
                waste_generated=m.waste_generated,
                recycled_content=m.recycled_content,
                recyclability=m.recyclability,
            )
            if m.created_at is not None:
                row.created_at = to_naive_utc(m.created_at)
            self.db.add(row)
        self.db.flush()
        return len(measurements)

    def save_report(self, project_id: str, document: ReportDocument) -> str:
        """Persist a report document. Caller commits."""
        report_id = str(uuid4())
        metadata = document.metadata
        self.db.add(ReportDB(
            id=report_id,
            project_id=project_id,
            title=metadata.title,
            report_type=metadata.report_type,
            content=document.to_dict(),
            fingerprint=metadata.fingerprint,
            schema_version=metadata.schema_version,
            generated_by=metadata.generated_by_id,
        ))
        self.db.flush()
        return report_id

    def get_report(self, report_id: str) -> StoredReport:
        row = self.db.query(ReportDB).filter(ReportDB.id == report_id).first()
        if row is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return stored_report_from_row(row)
