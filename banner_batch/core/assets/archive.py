"""
Template Archive Reader
=======================

Read an uploaded zip container and partition its entries by file extension
into markup, stylesheet, image, font and record-data entries.
"""

from typing import List, Optional
import io
import posixpath
import zipfile

from pydantic import BaseModel, Field

from banner_batch.config.logging import get_logger
from banner_batch.core.exceptions import TemplateParseFailure
from banner_batch.models.schemas import ArchiveEntry

logger = get_logger(__name__)

MARKUP_EXTENSIONS = {"html", "htm"}
STYLESHEET_EXTENSIONS = {"css"}
IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "svg", "bmp", "avif", "ico"}
FONT_EXTENSIONS = {"woff", "woff2", "ttf", "otf", "eot"}
DATA_EXTENSIONS = {"json", "yaml", "yml"}


class ArchivePartition(BaseModel):
    """Archive entries grouped by role."""

    markup: List[ArchiveEntry] = Field(default_factory=list)
    stylesheets: List[ArchiveEntry] = Field(default_factory=list)
    images: List[ArchiveEntry] = Field(default_factory=list)
    fonts: List[ArchiveEntry] = Field(default_factory=list)
    data: List[ArchiveEntry] = Field(default_factory=list)
    ignored: List[str] = Field(default_factory=list)

    @property
    def assets(self) -> List[ArchiveEntry]:
        return self.images + self.fonts

    def primary_markup(self) -> Optional[ArchiveEntry]:
        """The template page: ``index.html`` if present, else the shallowest markup file."""
        if not self.markup:
            return None
        for entry in self.markup:
            if entry.filename.lower() in ("index.html", "index.htm"):
                return entry
        return min(self.markup, key=lambda entry: (entry.path.count("/"), entry.path))


def _is_metadata(path: str) -> bool:
    parts = path.split("/")
    return parts[0] == "__MACOSX" or parts[-1].startswith("._") or parts[-1] == ".DS_Store"


def partition_entries(entries: List[ArchiveEntry]) -> ArchivePartition:
    """Sort entries into roles by extension."""
    partition = ArchivePartition()
    for entry in entries:
        ext = entry.extension
        if ext in MARKUP_EXTENSIONS:
            partition.markup.append(entry)
        elif ext in STYLESHEET_EXTENSIONS:
            partition.stylesheets.append(entry)
        elif ext in IMAGE_EXTENSIONS:
            partition.images.append(entry)
        elif ext in FONT_EXTENSIONS:
            partition.fonts.append(entry)
        elif ext in DATA_EXTENSIONS:
            partition.data.append(entry)
        else:
            partition.ignored.append(entry.path)
    return partition


def read_archive(data: bytes) -> ArchivePartition:
    """
    Read a zip container into partitioned entries.

    Args:
        data: Zip file bytes

    Returns:
        ArchivePartition with entries in archive order

    Raises:
        TemplateParseFailure: If the container is not a readable zip file
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            entries = []
            for info in archive.infolist():
                if info.is_dir():
                    continue
                path = posixpath.normpath(info.filename.replace("\\", "/")).lstrip("/")
                if _is_metadata(path):
                    continue
                entries.append(ArchiveEntry(path=path, content=archive.read(info)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
        raise TemplateParseFailure(f"Template archive could not be read: {e}") from e

    partition = partition_entries(entries)
    logger.info(
        "Template archive read",
        markup=len(partition.markup),
        stylesheets=len(partition.stylesheets),
        images=len(partition.images),
        fonts=len(partition.fonts),
        data=len(partition.data),
        ignored=len(partition.ignored),
    )
    return partition
