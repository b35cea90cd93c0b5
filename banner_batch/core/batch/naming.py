"""
Output Naming
=============

Deterministic names for batch outputs. Every name of one run shares a single
timestamp computed when the run starts.
"""

from datetime import datetime
from typing import Optional
import re

from banner_batch.config.settings import get_settings
from banner_batch.models.schemas import BannerRecord

PREVIEW_STEM = "template_preview"

_UNSAFE = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def batch_timestamp(fmt: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Run timestamp, ``%Y%m%d%H%M`` unless configured otherwise."""
    fmt = fmt or get_settings().timestamp_format
    return (now or datetime.now()).strftime(fmt)


def safe_stem(value: str) -> str:
    """Strip characters that cannot appear in an archive entry name."""
    return _UNSAFE.sub("_", value).strip(" ._") or "_"


def is_placeholder(record: BannerRecord, index: int) -> bool:
    """Only an empty or skeleton record at index 0 is the template preview."""
    return index == 0 and (record.is_placeholder or record.is_empty())


def output_name(record: BannerRecord, index: int, timestamp: str) -> str:
    """
    Output name without extension.

    ``{id}_{ts}`` when the record has an id, ``template_preview_{ts}`` for the
    placeholder, otherwise ``{index}_{ts}`` with the zero-based batch index.
    Real records behind a placeholder therefore count from 1 whether or not
    the placeholder is exported, while a real record at index 0 without an id
    is named ``0_{ts}``.
    """
    if record.id is not None:
        return f"{safe_stem(record.id)}_{timestamp}"
    if is_placeholder(record, index):
        return f"{PREVIEW_STEM}_{timestamp}"
    return f"{index}_{timestamp}"


def archive_name(timestamp: str, prefix: Optional[str] = None) -> str:
    prefix = prefix or get_settings().archive_prefix
    return f"{prefix}_{timestamp}.zip"
