from __future__ import annotations


class ExportError(Exception):
    """An export could not be produced; the message is shown to the user."""

    def __init__(self, message: str, *, export_format: str | None = None) -> None:
        super().__init__(message)
        self.export_format = export_format


class ExportBusyError(ExportError):
    """Another export for the same caller is still running."""
