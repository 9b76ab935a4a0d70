"""Raw metric samples."""

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pulsewatch.db.base import Base


class MetricSample(Base):
    """A single submitted value. Values are stored exactly as received."""

    __tablename__ = "metric_samples"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    metric: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Unix seconds"""

    __table_args__ = (
        Index("ix_metric_samples_tenant_metric_ts", "tenant_id", "metric", "timestamp"),
        Index("ix_metric_samples_timestamp", "timestamp"),
    )
