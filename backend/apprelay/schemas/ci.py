from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional

from .build import BuildResponse


class CITriggerRequest(BaseModel):
    project_name: Optional[str] = None
    branch: Optional[str] = None
    triggered_by_username: Optional[str] = None
    platform: Optional[str] = None
    channel: Optional[str] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class CITriggerResponse(BaseModel):
    message: str
    new_build: Optional[BuildResponse] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel
