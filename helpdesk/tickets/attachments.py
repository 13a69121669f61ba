"""Attachment classification helpers."""

from __future__ import annotations

from .models import AttachmentKind


def infer_kind(mime_type: str | None) -> AttachmentKind:
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return AttachmentKind.IMAGE
    if "sheet" in mime or "excel" in mime:
        return AttachmentKind.SPREADSHEET
    if "pdf" in mime:
        return AttachmentKind.PDF
    return AttachmentKind.OTHER


def classify(mime_type: str | None, override: str | AttachmentKind | None = None) -> AttachmentKind:
    """Return the explicit ``override`` when it names a known kind, else infer from MIME type."""

    if isinstance(override, AttachmentKind):
        return override
    if override:
        try:
            return AttachmentKind(str(override).strip().lower())
        except ValueError:
            pass
    return infer_kind(mime_type)
