from sqlalchemy import String, DateTime, Enum, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
import uuid

from .base import Base, enum_values
from ..utils import utcnow
from ..schemas.enums import Platform, Channel


class MonitoredRepository(Base):
    __tablename__ = "monitored_repositories"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    repo_url: Mapped[str] = mapped_column(Text, unique=True, index=True)
    default_branch: Mapped[str] = mapped_column(String(200))
    default_platform: Mapped[Platform] = mapped_column(
        Enum(Platform, values_callable=enum_values, native_enum=False)
    )
    default_channel: Mapped[Channel] = mapped_column(
        Enum(Channel, values_callable=enum_values, native_enum=False)
    )
    auto_trigger_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
