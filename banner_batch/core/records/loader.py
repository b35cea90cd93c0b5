"""
Record Loader
=============

Parse uploaded record files (JSON or YAML) into an ordered batch of
BannerRecords. Accepted shapes:

- a list of objects
- an object holding the list under ``records`` or ``data``
- a single object, read as a one-record batch

Values must be strings, numbers or lists of strings/numbers; ``null`` values
are dropped so the slot keeps its template default.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json

import yaml  # type: ignore[import-untyped]
from cerberus import Validator  # type: ignore[import-untyped]

from banner_batch.config.logging import get_logger
from banner_batch.core.exceptions import RecordFileError
from banner_batch.models.schemas import BannerRecord, RecordValue

logger = get_logger(__name__)

YAML_EXTENSIONS = ("yaml", "yml")
LIST_KEYS = ("records", "data")

RECORD_SCHEMA: Dict[str, Any] = {
    "records": {
        "type": "list",
        "required": True,
        "schema": {
            "type": "dict",
            "keysrules": {"type": "string", "empty": False},
            "valuesrules": {
                "nullable": True,
                "type": ["string", "number", "list"],
                "schema": {"type": ["string", "number"]},
            },
        },
    }
}


def _format_validation_errors(errors: Any, path: str = "") -> List[str]:
    """Flatten nested Cerberus errors into ``path: message`` lines."""
    formatted: List[str] = []
    for field, error_info in errors.items():
        current_path = f"{path}.{field}" if path else str(field)
        for error in error_info if isinstance(error_info, list) else [error_info]:
            if isinstance(error, dict):
                formatted.extend(_format_validation_errors(error, current_path))
            else:
                formatted.append(f"{current_path}: {error}")
    return formatted


def _parse(text: str, filename: Optional[str]) -> Any:
    ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else ""
    try:
        if ext in YAML_EXTENSIONS:
            return yaml.safe_load(text)
        if ext == "json":
            return json.loads(text)
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return yaml.safe_load(text)
    except json.JSONDecodeError as e:
        raise RecordFileError(f"Invalid JSON in {filename or 'record file'}: {e}") from e
    except yaml.YAMLError as e:
        raise RecordFileError(f"Invalid YAML in {filename or 'record file'}: {e}") from e


def _record_list(raw: Any) -> List[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in LIST_KEYS:
            if isinstance(raw.get(key), list):
                return raw[key]
        return [raw]
    raise RecordFileError(f"Record file must hold an object or a list, got {type(raw).__name__}")


def _to_record(raw: Dict[str, Any]) -> BannerRecord:
    values: Dict[str, RecordValue] = {}
    for name, value in raw.items():
        if value is None:
            continue
        if isinstance(value, list):
            values[name] = [str(item) for item in value if item is not None]
        else:
            values[name] = value
    return BannerRecord(values=values)


def load_records(data: Union[str, bytes], filename: Optional[str] = None) -> List[BannerRecord]:
    """
    Parse and validate a record file.

    Args:
        data: File content
        filename: Original filename, its extension selects the format

    Returns:
        Records in file order

    Raises:
        RecordFileError: If the file is undecodable, malformed or fails validation
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise RecordFileError(f"Record file is not valid UTF-8: {e}") from e
    else:
        text = data

    if not text.strip():
        raise RecordFileError("Record file is empty")

    raw = _parse(text, filename)
    if raw is None:
        raise RecordFileError("Record file is empty")

    document = {"records": _record_list(raw)}
    validator = Validator(RECORD_SCHEMA)  # type: ignore[misc]
    if not validator.validate(document):  # type: ignore[misc]
        errors = _format_validation_errors(validator.errors)  # type: ignore[attr-defined]
        logger.error("Record file validation failed", filename=filename, errors=errors[:5])
        raise RecordFileError("Invalid record file: " + "; ".join(errors))

    records = [_to_record(item) for item in document["records"]]
    logger.info("Records loaded", filename=filename, count=len(records))
    return records


def load_records_file(path: Union[str, Path]) -> List[BannerRecord]:
    """Read and parse a record file from disk."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise RecordFileError(f"Cannot read record file {path}: {e}") from e
    return load_records(data, path.name)
