"""
Captured LLM call ("run").

Runs are written by the ingestion side of the product. The radar engine
only reads them: filters address the columns below either through SQL
predicates or by inspecting a loaded instance.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, Float, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Run(Base):
    __tablename__ = "runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(32), default="llm")  # llm | chain | agent | tool | ...
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)  # model name for llm runs
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)  # success | error | started
    input: Mapped[str | None] = mapped_column(Text, nullable=True)
    output: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prompt_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completion_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_runs_project_created", "project_id", "created_at"),
    )

    def text_field(self, field: str) -> str:
        """Return ``input``, ``output`` or both joined (``any``) as plain text."""
        if field == "input":
            return self.input or ""
        if field == "output":
            return self.output or ""
        return "\n".join(part for part in (self.input, self.output) if part)
