from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List


class FeedbackCreate(BaseModel):
    build_id: Optional[str] = None
    user: Optional[str] = None
    comment: Optional[str] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class FeedbackResponse(BaseModel):
    id: str
    build_id: str
    user: str
    comment: str
    timestamp: datetime

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class FeedbackCreatedResponse(BaseModel):
    feedback: FeedbackResponse


class FeedbackListResponse(BaseModel):
    feedbacks: List[FeedbackResponse] = Field(default_factory=list)
