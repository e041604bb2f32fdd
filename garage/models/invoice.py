import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    Numeric,
    Boolean,
    DateTime,
    Date,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from garage.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Opaque tenant tag; scoping is enforced outside this package.
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True)
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    invoice_date: Mapped[Optional[date]] = mapped_column("date", Date)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="open")
    tax_rate: Mapped[Optional[float]] = mapped_column(
        Numeric(6, 3, asdecimal=False), default=0
    )
    discount_type: Mapped[Optional[str]] = mapped_column(
        String(20), default="none"
    )
    discount_value: Mapped[Optional[float]] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=0
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_invoices_organization", "organization_id"),
        Index("idx_invoices_status", "status"),
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True)
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[float] = mapped_column(
        Numeric(12, 3, asdecimal=False), nullable=False
    )
    price: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), nullable=False
    )
    part_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    task_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    is_auto_added: Mapped[bool] = mapped_column(Boolean, default=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), default="piece")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_invoice_items_invoice", "invoice_id"),
        Index("idx_invoice_items_part", "part_id"),
        Index("idx_invoice_items_task", "task_id"),
    )
