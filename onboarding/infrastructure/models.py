from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase): pass


class AdminORM(Base):
    """Сотрудники; кураторы — записи с role="counselor"."""
    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"AdminORM(id={self.id!r}, role={self.role!r})"


class StudentORM(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    counselor_id: Mapped[str | None] = mapped_column(
        ForeignKey("admins.id"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"StudentORM(id={self.id!r}, email={self.email!r})"


class CounselorMenteeORM(Base):
    """Подопечные куратора: одна строка на студента, добавление — один INSERT."""
    __tablename__ = "counselor_mentees"

    counselor_id: Mapped[str] = mapped_column(
        ForeignKey("admins.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
        unique=True,
    )

    def __repr__(self) -> str:
        return f"CounselorMenteeORM(counselor_id={self.counselor_id!r}, student_id={self.student_id!r})"


__all__ = [
    "Base",
    "AdminORM",
    "StudentORM",
    "CounselorMenteeORM",
    "new_id",
    "utcnow",
]
