"""
Domain models for fetchbench.

Defines the row schema of the benchmark table (see `fetchbench.domain.schema`).
The seeding script builds rows through this model and fully loaded live
records convert into it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class BenchmarkRecord(BaseModel):
    """
    Representation of a single row in the `benchmark_records` table.
    """

    id: Optional[int] = Field(None, description="Primary key (BIGSERIAL); None before insert.")
    knowledge_begin_date: datetime = Field(..., description="Start of the knowledge window.")
    knowledge_end_date: Optional[datetime] = Field(
        None, description="Null until a database-side update derives it from the begin date."
    )
    client_id: int = Field(..., description="Owning client.")
    databook_id: UUID = Field(..., description="Databook the row belongs to.")
    datasheet_id: UUID = Field(..., description="Datasheet the row belongs to.")
    data: Optional[Dict[str, Any]] = Field(None, description="Arbitrary JSON document.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


__all__ = ["BenchmarkRecord"]
