"""API schema package."""

from app.api.schemas.uploads import (
    ParsedRowOut,
    ParsedRowPage,
    SheetSummary,
    UploadDetail,
    UploadQueuedResponse,
    UploadSummary,
)

__all__ = [
    "ParsedRowOut",
    "ParsedRowPage",
    "SheetSummary",
    "UploadDetail",
    "UploadQueuedResponse",
    "UploadSummary",
]
