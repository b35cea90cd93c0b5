"""
Asset Bundle
============

Map normalized resource keys to inline payloads. Every asset is registered
under each equivalent form a template or record may use to refer to it, so
that ``./img/x.png``, ``img/x.png`` and ``x.png`` land on the same payload.
"""

from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union
import mimetypes
import posixpath
from pathlib import Path

from banner_batch.config.logging import get_logger
from banner_batch.core.assets.archive import FONT_EXTENSIONS, IMAGE_EXTENSIONS
from banner_batch.models.schemas import ArchiveEntry, InlineResource

logger = get_logger(__name__)

_EXTRA_MIME_TYPES = {
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
    "eot": "application/vnd.ms-fontobject",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "avif": "image/avif",
}


def guess_mime_type(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    if ext in _EXTRA_MIME_TYPES:
        return _EXTRA_MIME_TYPES[ext]
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or "application/octet-stream"


def strip_relative_prefix(path: str) -> str:
    """Drop leading ``./``, ``../`` and ``/`` segments."""
    while True:
        if path.startswith("./"):
            path = path[2:]
        elif path.startswith("../"):
            path = path[3:]
        elif path.startswith("/"):
            path = path[1:]
        else:
            return path


# Key forms, in registration order
KeyGenerator = Callable[[str, str], Optional[str]]


def _original_key(path: str, base_dir: str) -> Optional[str]:
    return path


def _stripped_key(path: str, base_dir: str) -> Optional[str]:
    return strip_relative_prefix(path)


def _dot_slash_key(path: str, base_dir: str) -> Optional[str]:
    return "./" + strip_relative_prefix(path)


def _template_relative_key(path: str, base_dir: str) -> Optional[str]:
    if not base_dir:
        return None
    stripped = strip_relative_prefix(path)
    prefix = base_dir.rstrip("/") + "/"
    if not stripped.startswith(prefix):
        return None
    return stripped[len(prefix):]


def _template_relative_dot_key(path: str, base_dir: str) -> Optional[str]:
    relative = _template_relative_key(path, base_dir)
    return "./" + relative if relative else None


def _filename_key(path: str, base_dir: str) -> Optional[str]:
    return posixpath.basename(path) or None


KEY_GENERATORS: List[KeyGenerator] = [
    _original_key,
    _stripped_key,
    _dot_slash_key,
    _template_relative_key,
    _template_relative_dot_key,
    _filename_key,
]


def key_forms(path: str, base_dir: str = "") -> List[str]:
    """All keys a resource at ``path`` is registered under, without duplicates."""
    keys: List[str] = []
    for generator in KEY_GENERATORS:
        key = generator(path, base_dir)
        if key and key not in keys:
            keys.append(key)
    return keys


class AssetBundle:
    """Read-only lookup from resource key to inline payload."""

    def __init__(self, base_dir: str = "") -> None:
        self.base_dir = base_dir.strip("/")
        self._resources: Dict[str, InlineResource] = {}
        self._paths: List[str] = []

    @classmethod
    def from_entries(cls, entries: Iterable[ArchiveEntry], base_dir: str = "") -> "AssetBundle":
        """Build a bundle from extracted image and font entries."""
        bundle = cls(base_dir)
        for entry in entries:
            bundle.add(entry.path, InlineResource(content=entry.content, mime_type=guess_mime_type(entry.path)))
        logger.info("Asset bundle built", assets=len(bundle._paths), keys=len(bundle._resources))
        return bundle

    @classmethod
    def from_directory(cls, directory: Union[str, Path], base_dir: str = "") -> "AssetBundle":
        """Build a bundle from image and font files under a local directory."""
        root = Path(directory)
        entries = [
            ArchiveEntry(path=path.relative_to(root).as_posix(), content=path.read_bytes())
            for path in sorted(root.rglob("*"))
            if path.is_file() and path.suffix.lstrip(".").lower() in IMAGE_EXTENSIONS | FONT_EXTENSIONS
        ]
        return cls.from_entries(entries, base_dir)

    def add(self, path: str, resource: InlineResource) -> None:
        """Register ``resource`` under every key form of ``path``; existing keys win."""
        self._paths.append(path)
        for key in key_forms(path, self.base_dir):
            if key in self._resources:
                logger.debug("Asset key already registered", key=key, path=path)
                continue
            self._resources[key] = resource

    def get(self, key: str) -> Optional[InlineResource]:
        return self._resources.get(key)

    def keys(self) -> List[str]:
        return list(self._resources)

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def __contains__(self, key: object) -> bool:
        return key in self._resources

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._paths)

    def __bool__(self) -> bool:
        return bool(self._paths)
