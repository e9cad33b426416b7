from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def enum_values(enum_cls) -> list[str]:
    """Persist enum values ("In Progress") rather than member names."""
    return [member.value for member in enum_cls]
