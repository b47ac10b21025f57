from __future__ import annotations
import datetime as dt
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, Date, DateTime, ForeignKey

from agency.constants.domain import DEFAULT_CURRENCY
from .identity import Base, new_id, utc_now


class Payment(Base):
    """Amount owed to an employee for work on a project."""
    __tablename__ = 'payments'
    STATUS_UNPAID = 'unpaid'
    STATUS_PAID = 'paid'
    ALL_STATUSES = (STATUS_UNPAID, STATUS_PAID)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    employee_id: Mapped[str] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_UNPAID)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class Revenue(Base):
    """Amount received from a client for a project."""
    __tablename__ = 'revenues'
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    ALL_STATUSES = (STATUS_PENDING, STATUS_PAID)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    date_received: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
