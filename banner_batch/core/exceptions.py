"""
Exceptions
==========

Error taxonomy shared by the binding and batch rendering engine.

Structural failures (template parsing, packaging, empty archive) abort a batch.
Per-field and per-record failures are recoverable: they are logged, counted and
summarized at the end of the batch.
"""

from typing import Optional


class BannerBatchError(Exception):
    """Base class for all banner batch errors."""

    pass


class TemplateParseFailure(BannerBatchError):
    """Raised when template markup cannot be parsed; no record is processed."""

    pass


class RecordFileError(BannerBatchError):
    """Raised when a record file cannot be parsed or validated."""

    pass


class FieldMissingInLiveTemplate(BannerBatchError):
    """A bound field has no slot in the live template. Recoverable."""

    def __init__(self, field_name: str):
        super().__init__(f"Field {field_name!r} has no slot in the live template")
        self.field_name = field_name


class ResourceUnresolved(BannerBatchError):
    """A resource reference matched no asset bundle entry. Recoverable."""

    def __init__(self, reference: str):
        super().__init__(f"Resource reference not found in asset bundle: {reference}")
        self.reference = reference


class RasterizationError(BannerBatchError):
    """Raised when the browser fails to load or capture a page."""

    pass


class RecordCaptureFailure(BannerBatchError):
    """Binding or capture of a single record failed. Recoverable."""

    def __init__(self, index: int, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"Record {index} failed: {reason}")
        self.index = index
        self.reason = reason
        self.cause = cause


class PackagingFailure(BannerBatchError):
    """Raised when the output archive cannot be written."""

    pass


class ArchiveEmptyFailure(PackagingFailure):
    """Raised when no record produced a raster image."""

    def __init__(self, total: int = 0):
        super().__init__(f"No banner was generated ({total} records processed)")
        self.total = total
