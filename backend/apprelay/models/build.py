from sqlalchemy import String, DateTime, Enum, Text, Integer, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional
import uuid

from .base import Base, enum_values
from ..utils import utcnow
from ..schemas.enums import Platform, Channel, BuildStatus, BuildSource


class Build(Base):
    __tablename__ = "builds"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Group key - immutable after creation
    app_name: Mapped[str] = mapped_column(String(200), index=True)
    platform: Mapped[Platform] = mapped_column(
        Enum(Platform, values_callable=enum_values, native_enum=False)
    )
    channel: Mapped[Channel] = mapped_column(
        Enum(Channel, values_callable=enum_values, native_enum=False)
    )

    version_name: Mapped[str] = mapped_column(String(200))
    version_code: Mapped[str] = mapped_column(String(200))
    changelog: Mapped[str] = mapped_column(Text)
    previous_changelog: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    build_status: Mapped[BuildStatus] = mapped_column(
        Enum(BuildStatus, values_callable=enum_values, native_enum=False),
        default=BuildStatus.SUCCESS,
    )
    commit_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Artifact
    download_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    qr_code_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_type: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    download_count: Mapped[int] = mapped_column(Integer, default=0)

    # Provenance
    source: Mapped[BuildSource] = mapped_column(
        Enum(BuildSource, values_callable=enum_values, native_enum=False),
        default=BuildSource.MANUAL_UPLOAD,
    )
    ci_build_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pipeline_status: Mapped[Optional[BuildStatus]] = mapped_column(
        Enum(BuildStatus, values_callable=enum_values, native_enum=False),
        nullable=True,
    )
    ci_logs_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    triggered_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # iOS install restriction
    allowed_udids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Relationships - the database cascades, the ORM never loads children to delete
    feedbacks: Mapped[list["Feedback"]] = relationship(
        "Feedback", back_populates="build", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_builds_platform_channel", "platform", "channel"),
        Index("ix_builds_upload_date", "upload_date"),
    )
