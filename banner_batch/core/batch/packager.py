"""
Archive Packager
================

Collect the rasters of a batch into a single zip archive.
"""

from typing import Any, List, Optional, Sequence
import io
import zipfile

from banner_batch.config.logging import get_logger
from banner_batch.core.batch.naming import archive_name, batch_timestamp
from banner_batch.core.exceptions import ArchiveEmptyFailure, PackagingFailure
from banner_batch.models.schemas import NamedRaster, PackagedArchive

logger = get_logger(__name__)

EXTENSION = ".png"


def unique_entry_names(names: Sequence[str]) -> List[str]:
    """``name.png`` per output, repeated names suffixed ``_2``, ``_3`` and so on."""
    seen = set()
    entries = []
    for name in names:
        candidate = f"{name}{EXTENSION}"
        counter = 2
        while candidate in seen:
            candidate = f"{name}_{counter}{EXTENSION}"
            counter += 1
        seen.add(candidate)
        entries.append(candidate)
    return entries


class ArchivePackager:
    """Pure aggregation of named rasters into a deflated zip."""

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix
        self.logger: Any = logger.bind(component="archive_packager")

    def collect(
        self,
        outputs: Sequence[NamedRaster],
        timestamp: Optional[str] = None,
        total: Optional[int] = None,
    ) -> PackagedArchive:
        """
        Package rasters in input order.

        Args:
            outputs: Named rasters of the batch
            timestamp: Run timestamp shared with the entry names
            total: Number of records processed, for the empty-archive message

        Returns:
            PackagedArchive holding the zip bytes

        Raises:
            ArchiveEmptyFailure: If there is nothing to package
            PackagingFailure: If the archive cannot be written
        """
        if not outputs:
            raise ArchiveEmptyFailure(total or 0)

        timestamp = timestamp or batch_timestamp()
        entries = unique_entry_names([output.name for output in outputs])

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for entry, output in zip(entries, outputs):
                    archive.writestr(entry, output.png_data)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            self.logger.error("Failed to write archive", error=str(e))
            raise PackagingFailure(f"Archive could not be written: {e}") from e

        packaged = PackagedArchive(
            filename=archive_name(timestamp, self.prefix),
            data=buffer.getvalue(),
            entries=entries,
        )
        self.logger.info(
            "Archive packaged",
            filename=packaged.filename,
            entries=len(entries),
            file_size=packaged.file_size,
        )
        return packaged
