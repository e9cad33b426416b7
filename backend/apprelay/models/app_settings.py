from sqlalchemy import String, DateTime, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional

from .base import Base


class SettingsRow(Base):
    """
    Singleton operational settings row.

    Every column is nullable: a row written before a column existed reads
    back as NULL and is backfilled from defaults by the settings store.
    """
    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    use_remote_database: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    use_remote_storage: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    api_base_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    local_build_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    max_builds_per_group: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    delete_policy: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    enable_auto_clean: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    changelog_summary_enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    feedback_enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    notify_on_new_build: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    ci_integration_enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    build_approval_required: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    qr_code_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    default_channel: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    max_upload_size_mb: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ui_theme: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
