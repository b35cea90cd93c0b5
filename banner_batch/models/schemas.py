"""
Pydantic Models and Schemas
===========================

Core data models for template descriptors, data records, inline resources,
batch jobs and their results.
"""

from typing import Optional, List, Dict, Any, Union, Iterator
from datetime import datetime, timezone
from enum import Enum
import base64
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


RecordValue = Union[str, int, float, List[str]]


# Enums
class FieldKind(str, Enum):
    """Kinds of bindable template slots."""

    TEXT = "text"
    IMAGE = "image"
    COMPOSITE_PRICE_INT = "composite_price_int"
    COMPOSITE_PRICE_DECIMAL = "composite_price_decimal"
    REPEATED_IMAGE_GROUP = "repeated_image_group"


class BatchState(str, Enum):
    """Batch orchestrator state."""

    IDLE = "idle"
    BINDING = "binding"
    SETTLING = "settling"
    CAPTURING = "capturing"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Template Models
class TemplateField(BaseModel):
    """A named, bindable slot discovered in template markup."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Slot name (data-field value)")
    label: Optional[str] = Field(None, description="Human label (data-label value)")
    kind: FieldKind = Field(FieldKind.TEXT, description="Slot kind")

    # Repeated image groups only
    container_selector: Optional[str] = Field(None, description="Group container selector")
    qty_field: Optional[str] = Field(None, description="Record field holding the image count")

    @property
    def display_name(self) -> str:
        return self.label or self.name


class TemplateDescriptor(BaseModel):
    """Ordered, de-duplicated set of template fields."""

    model_config = ConfigDict(frozen=True)

    fields: List[TemplateField] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def validate_unique_names(cls, v: List[TemplateField]) -> List[TemplateField]:
        """Field names must be unique."""
        seen = set()
        for field in v:
            if field.name in seen:
                raise ValueError(f"Duplicate field name: {field.name}")
            seen.add(field.name)
        return v

    def names(self) -> List[str]:
        return [field.name for field in self.fields]

    def get(self, name: str) -> Optional[TemplateField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def of_kind(self, *kinds: FieldKind) -> List[TemplateField]:
        return [field for field in self.fields if field.kind in kinds]

    def __contains__(self, name: object) -> bool:
        return any(field.name == name for field in self.fields)

    def __iter__(self) -> Iterator[TemplateField]:  # type: ignore[override]
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


# Record Models
class BannerRecord(BaseModel):
    """One data record: field name -> value."""

    model_config = ConfigDict(frozen=True)

    values: Dict[str, RecordValue] = Field(default_factory=dict, description="Field values")
    is_placeholder: bool = Field(
        False, description="Skeleton record built from the template's own defaults"
    )

    @property
    def id(self) -> Optional[str]:
        """Output name stem, when the record carries one."""
        value = self.values.get("id")
        if value is None or isinstance(value, list):
            return None
        text = str(value).strip()
        return text or None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def is_empty(self) -> bool:
        return not self.values


# Resource Models
class InlineResource(BaseModel):
    """Self-contained payload replacing a path reference."""

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(..., description="Raw resource bytes", repr=False)
    mime_type: str = Field(..., description="MIME type")

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ArchiveEntry(BaseModel):
    """A file read from an uploaded template archive."""

    path: str = Field(..., description="Path inside the archive")
    content: bytes = Field(..., description="File content", repr=False)

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        name = self.filename
        return name.rsplit(".", 1)[-1].lower() if "." in name else ""


# Binding Models
class BindReport(BaseModel):
    """Outcome of binding one record onto a render target."""

    bound: List[str] = Field(default_factory=list, description="Fields written")
    missing: List[str] = Field(default_factory=list, description="Fields without a live slot")
    unchanged: List[str] = Field(default_factory=list, description="Fields without a value")


# Rendering Models
class RenderOptions(BaseModel):
    """Options for capturing a bound template."""

    width: int = Field(1200, gt=0, le=8000, description="Viewport width")
    height: int = Field(1200, gt=0, le=8000, description="Viewport height")
    scale: float = Field(2.0, gt=0, le=4.0, description="Device scale factor of the capture")
    export_selector: Optional[str] = Field(
        ".container", description="Export root selector, <body> when absent"
    )
    settle_delay_ms: int = Field(300, ge=0, description="Layout stabilization delay")
    font_wait_timeout_ms: int = Field(5000, ge=0, description="Font loading wait bound")
    optimize_png: bool = Field(False, description="Re-encode PNG with Pillow")
    background_color: str = Field("#ffffff", description="Background color")


# Batch Models
class RecordResult(BaseModel):
    """Outcome of one record within a batch."""

    index: int = Field(..., ge=0)
    filename: Optional[str] = Field(None, description="Output name without extension")
    png_data: Optional[bytes] = Field(None, repr=False, exclude=True)
    error: Optional[str] = Field(None, description="Failure reason")
    skipped: bool = Field(False, description="Placeholder record left out of the output")

    @property
    def success(self) -> bool:
        return self.png_data is not None and self.error is None


class BatchJob(BaseModel):
    """A single export run over an ordered batch of records."""

    records: List[BannerRecord] = Field(default_factory=list)
    cursor: int = Field(0, ge=0)
    results: List[RecordResult] = Field(default_factory=list)
    timestamp: str = Field(
        default_factory=lambda: datetime.now().strftime("%Y%m%d%H%M"),
        description="Shared by every filename of the run",
    )
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.records)


class BatchProgress(BaseModel):
    """Progress notification emitted after each record."""

    index: int
    total: int
    filename: Optional[str] = None
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class NamedRaster(BaseModel):
    """A raster output ready for packaging."""

    name: str = Field(..., min_length=1, description="Output name without extension")
    png_data: bytes = Field(..., repr=False)


class PackagedArchive(BaseModel):
    """The downloadable zip holding every raster of a batch."""

    filename: str
    data: bytes = Field(..., repr=False)
    entries: List[str] = Field(default_factory=list)

    @property
    def file_size(self) -> int:
        return len(self.data)

    def save(self, directory: Union[str, Path]) -> Path:
        """Write the archive into ``directory`` and return its path."""
        path = Path(directory) / self.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


class BatchResult(BaseModel):
    """Final outcome of a batch run."""

    state: BatchState
    total: int
    succeeded: int
    failed: int
    skipped: int = 0
    results: List[RecordResult] = Field(default_factory=list)
    archive: Optional[PackagedArchive] = None
    timestamp: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> str:
        produced = self.total - self.skipped
        return f"{self.succeeded}/{produced} banners generated"
