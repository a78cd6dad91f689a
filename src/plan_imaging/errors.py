"""Exception taxonomy for the plan rendering pipeline."""

from typing import Optional


class PlanImagingError(Exception):
    """Base class for every error raised by the pipeline."""


class DocumentError(PlanImagingError):
    """The source spreadsheet could not be turned into a TableDocument."""


class DocumentUnavailable(DocumentError):
    """Source is missing, unreadable, zero-length or not a valid container."""


class UnsupportedFormat(DocumentError):
    """File extension matches none of the supported spreadsheet formats."""


class EmptyDocument(DocumentError):
    """Workbook contains no sheets."""


class SheetNotFound(DocumentError):
    """First sheet of the workbook could not be read."""


class EmptySelection(PlanImagingError):
    """Selection holds no columns, so there is nothing to lay out."""


class InvalidKeyInput(PlanImagingError):
    """Cache key inputs are missing or of the wrong type."""


class UnknownStrategy(PlanImagingError):
    """No document producer is registered under the requested name."""


class RenderFailed(PlanImagingError):
    """Parsing, layout or drawing failed for one request.

    The underlying exception is kept on ``cause`` (and as ``__cause__``
    when raised with ``raise ... from``).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
