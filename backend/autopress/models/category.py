"""Category model for PostgreSQL."""

from datetime import datetime, UTC

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class Category(SQLModel, table=True):
    """Content category. Read-only input to the generation core."""

    __tablename__ = "categories"

    id: int | None = Field(default=None, primary_key=True)
    slug: str = Field(max_length=100, unique=True, index=True)
    display_name: str = Field(max_length=200)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
