"""Shared job models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict

from app.errors import InvalidTransitionError


class JobStatus(str, Enum):
    """Possible states for a processing request."""

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


class ImageStatus(str, Enum):
    """Possible states for a single image transformation."""

    pending = "pending"
    completed = "completed"
    failed = "failed"


_TERMINAL_STATES: FrozenSet[JobStatus] = frozenset({JobStatus.completed, JobStatus.failed})

_ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.pending: frozenset({JobStatus.processing, JobStatus.failed}),
    JobStatus.processing: frozenset({JobStatus.completed, JobStatus.failed}),
}


def ensure_transition(current: JobStatus, attempted: JobStatus) -> None:
    """Raise if a request may not move from ``current`` to ``attempted``."""

    if current.is_terminal:
        raise InvalidTransitionError(current.value, attempted.value)
    if attempted not in _ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, attempted.value)


class RequestRecord(BaseModel):
    """Snapshot of a stored request."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime


class ImageRecord(BaseModel):
    """Snapshot of a stored image row together with its product."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    serial_number: str
    product_name: str
    position: int
    input_url: str
    processing_status: ImageStatus
    output_url: Optional[str] = None
