from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
import uuid

from .base import Base
from ..utils import utcnow


class Feedback(Base):
    __tablename__ = "feedbacks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    build_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("builds.id", ondelete="CASCADE"), index=True
    )
    user_name: Mapped[str] = mapped_column(String(200))
    comment: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, index=True
    )

    # Relationships
    build: Mapped["Build"] = relationship("Build", back_populates="feedbacks")
