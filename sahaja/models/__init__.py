"""Enum registry — application code can do::

    from sahaja.models import CropReportStatusEnum, QueryStatusEnum, ...
"""

from sahaja.models.enums import (
    CropReportStatusEnum,
    QueryStatusEnum,
    UploadStateEnum,
)

__all__ = [
    "CropReportStatusEnum",
    "QueryStatusEnum",
    "UploadStateEnum",
]
