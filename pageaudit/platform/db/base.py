from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import declarative_base
from uuid_extension import uuid7

Base = declarative_base()


def new_id() -> str:
    """Time-ordered id; analyses created later sort after earlier ones."""
    return str(uuid7())


class BaseModel(Base):
    __abstract__ = True

    id = Column(String, primary_key=True, default=new_id, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


# alembic/env.py imports the analysis models; this module must not.
