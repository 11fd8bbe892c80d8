from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from siteops.core.timeutils import now_utc

QUANTITY = Numeric(14, 3)
MONEY = Numeric(14, 2)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class ProjectModel(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    # Plain reference: users also point at projects.
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    phone: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(8), nullable=False, default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_code: Mapped[Optional[str]] = mapped_column(String(6), nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    device_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_login_device: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    project_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )


class MaterialBatchModel(Base):
    __tablename__ = "material_batches"

    seq_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=_uuid)
    material_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    delivered_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    written_off_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    unit_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    delivered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    added_by: Mapped[str] = mapped_column(String(128), nullable=False)
    document: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Available")
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )

    usage_events: Mapped[list["MaterialUsageEventModel"]] = relationship(
        back_populates="batch",
        order_by="MaterialUsageEventModel.seq_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    project: Mapped[ProjectModel] = relationship()


class MaterialUsageEventModel(Base):
    __tablename__ = "material_usage_events"

    seq_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_seq_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("material_batches.seq_id", ondelete="CASCADE"), nullable=False
    )
    consumption_id: Mapped[str] = mapped_column(String(36), nullable=False)
    taken_by: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)

    batch: Mapped[MaterialBatchModel] = relationship(back_populates="usage_events")


employee_projects = Table(
    "employee_projects",
    Base.metadata,
    Column("employee_id", String(36), ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
)


class EmployeeModel(Base):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    salary_per_day: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    joining_date: Mapped[date] = mapped_column(Date, nullable=False)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)

    assigned_projects: Mapped[list[ProjectModel]] = relationship(
        secondary=employee_projects,
        order_by=ProjectModel.name,
        lazy="selectin",
    )


class AttendanceModel(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    employee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    in_time: Mapped[str] = mapped_column(String(16), nullable=False)
    out_time: Mapped[str] = mapped_column(String(16), nullable=False)
    work: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)

    employee: Mapped[EmployeeModel] = relationship(lazy="joined")


Index("ix_material_batches_code_delivered", MaterialBatchModel.material_code, MaterialBatchModel.delivered_at)
Index("ix_material_batches_project", MaterialBatchModel.project_id)
Index("ix_material_usage_events_batch", MaterialUsageEventModel.batch_seq_id)
Index("ix_attendance_date", AttendanceModel.attendance_date)
