"""
Raw webhook payload model (audit trail of every inbound call)
"""

from sqlalchemy import Column, String, DateTime, Text, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from telemetry_ingest.database.connection import Base, BigIntegerId

JsonDocument = JSON().with_variant(JSONB, "postgresql")

RAW_STATUSES = ("pending", "processing", "completed", "failed")


class RawPayload(Base):
    """Inbound webhook document exactly as received; never mutated"""

    __tablename__ = "raw_webhook_payloads"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    payload = Column(JsonDocument, nullable=False)
    source = Column(String(50), nullable=False, default="Tive")
    status = Column(String(20), nullable=False, default="pending")  # pending, processing, completed, failed
    validation_errors = Column(JsonDocument)
    processing_error = Column(Text)
    task_id = Column(String(255), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_raw_payloads_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<RawPayload(id={self.id}, status={self.status}, task_id={self.task_id})>"
