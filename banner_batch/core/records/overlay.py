"""
Edit Overlay
============

Manual per-record edits layered over loaded records. Records stay immutable;
an overlay entry wins over the record's own value when binding.
"""

from typing import Any, Dict, Iterator, Optional

from banner_batch.models.schemas import RecordValue


class EditOverlay:
    """Record index -> field name -> edited value."""

    def __init__(self) -> None:
        self._entries: Dict[int, Dict[str, RecordValue]] = {}

    def set(self, index: int, field_name: str, value: RecordValue) -> None:
        self._entries.setdefault(index, {})[field_name] = value

    def get(self, index: int, field_name: str, default: Any = None) -> Any:
        return self._entries.get(index, {}).get(field_name, default)

    def for_index(self, index: int) -> Dict[str, RecordValue]:
        """Copy of the edits of one record; empty when it has none."""
        return dict(self._entries.get(index, {}))

    def discard(self, index: int, field_name: Optional[str] = None) -> None:
        """Drop one edit, or every edit of the record when no field is named."""
        if field_name is None:
            self._entries.pop(index, None)
            return
        edits = self._entries.get(index)
        if edits is not None:
            edits.pop(field_name, None)
            if not edits:
                del self._entries[index]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
