"""Enum types shared by the wire schemas and the progression engine.

Values match the strings the remote API sends; parsing goes through the
pydantic schemas in ``sahaja/schemas``.
"""

from enum import StrEnum

# ── Crop reports ────────────────────────────────────────────────────────────


class CropReportStatusEnum(StrEnum):
    """Server-derived lifecycle state of a crop report."""

    active = "active"
    completed = "completed"
    abandoned = "abandoned"


# ── Queries ─────────────────────────────────────────────────────────────────


class QueryStatusEnum(StrEnum):
    """Farmer query status as reported by the advisory backend."""

    open = "open"
    answered = "answered"
    closed = "closed"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    under_review = "under_review"
    escalated = "escalated"


# ── Stage photo upload ──────────────────────────────────────────────────────


class UploadStateEnum(StrEnum):
    """States of the two-phase stage photo upload."""

    idle = "idle"
    previewing = "previewing"
    uploading = "uploading"
    succeeded = "succeeded"
    failed = "failed"
