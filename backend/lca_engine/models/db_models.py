"""
LCA Report Engine - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class UserRole(str, Enum):
    """Domain roles. Access control only distinguishes admin from everyone else."""
    ADMIN = "admin"
    AUDITOR = "auditor"
    METALLURGIST = "metallurgist"
    ENGINEER = "engineer"
    POLICYMAKER = "policymaker"


DEFAULT_USER_ROLE = UserRole.ENGINEER


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class MetalType(str, Enum):
    """Metals offered by the UI. Projects may also carry any other string."""
    ALUMINIUM = "aluminium"
    COPPER = "copper"
    STEEL = "steel"
    ZINC = "zinc"
    OTHER = "other"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"
    UPLOAD = "upload"


class AuditResource(str, Enum):
    PROJECT = "project"
    REPORT = "report"
    USER = "user"
    UPLOAD = "upload"


class UserDB(Base):
    """Account of a person who owns projects and generates reports."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    role = Column(String(20), default=DEFAULT_USER_ROLE.value)  # one of UserRole
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    projects = relationship("ProjectDB", back_populates="owner", cascade="all, delete-orphan")
    reports = relationship("ReportDB", back_populates="generator")
    audit_logs = relationship("AuditLogDB", back_populates="user")


class ProjectDB(Base):
    """LCA project for one metal product."""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    metal_type = Column(String(50), nullable=False)  # aluminium, copper, steel, zinc, other
    status = Column(String(20), default=ProjectStatus.ACTIVE.value)  # draft, active, completed, archived
    created_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("UserDB", back_populates="projects")
    measurements = relationship("MeasurementDB", back_populates="project", cascade="all, delete-orphan")
    reports = relationship("ReportDB", back_populates="project", cascade="all, delete-orphan")


class MeasurementDB(Base):
    """One LCA observation. Immutable once recorded."""
    __tablename__ = "lca_data"
    __table_args__ = (
        UniqueConstraint("project_id", "seq", name="uq_lca_data_project_seq"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False, default=0)  # Insertion order within the project

    process_stage = Column(String(50), nullable=False)  # extraction, processing, manufacturing, use, end_of_life
    energy_consumption = Column(Float, default=0.0)  # MJ
    emissions_co2 = Column(Float, default=0.0)  # kg CO2-eq
    water_usage = Column(Float, default=0.0)  # liters
    waste_generated = Column(Float, default=0.0)  # kg
    recycled_content = Column(Float, default=0.0)  # percent
    recyclability = Column(Float, default=0.0)  # percent

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("ProjectDB", back_populates="measurements")


class ReportDB(Base):
    """Generated report. Content is the full serialized ReportDocument, never edited."""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)  # UUID
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    report_type = Column(String(50), nullable=False)

    content = Column(JSON, nullable=False)
    fingerprint = Column(String(128), nullable=False, index=True)
    schema_version = Column(Integer, nullable=False, default=1)

    generated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("ProjectDB", back_populates="reports")
    generator = relationship("UserDB", back_populates="reports")


class AuditLogDB(Base):
    """
    Append-only record of user actions for the admin console.
    Written in the same transaction as the change it describes.
    """
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(20), nullable=False, index=True)  # create, update, delete, login, logout, upload
    resource_type = Column(String(20), nullable=False, index=True)  # project, report, user, upload
    resource_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("UserDB", back_populates="audit_logs")
