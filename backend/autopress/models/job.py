"""Daily generation job and token usage ledgers."""

from datetime import date, datetime, UTC
from typing import Any

from sqlalchemy import Column, DateTime, JSON
from sqlmodel import Field, SQLModel


class JobStatus:
    PENDING = "pending"
    COMPLETE = "complete"
    PARTIAL = "partial"
    ERROR = "error"


class GenerationJob(SQLModel, table=True):
    """
    One row per calendar day.

    `generated_count` is only incremented inside the transaction that commits
    a master article, so it always matches the masters visible for that day.
    """

    __tablename__ = "generation_jobs"

    id: int | None = Field(default=None, primary_key=True)
    job_date: date = Field(unique=True, index=True)
    target_count: int = Field(default=0)
    generated_count: int = Field(default=0)
    status: str = Field(default=JobStatus.PENDING, max_length=20)
    error_summary: str | None = Field(default=None, max_length=2000)

    # Last run report
    summary: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    execution_ms: int | None = Field(default=None)

    # Timestamps
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    # Set only when a run finalizes; article commits do not touch it
    finalized_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class TokenUsage(SQLModel, table=True):
    """Additive per-day token totals."""

    __tablename__ = "token_usage"

    day: date = Field(primary_key=True)
    tokens_in: int = Field(default=0)
    tokens_out: int = Field(default=0)

    @property
    def total(self) -> int:
        return self.tokens_in + self.tokens_out
