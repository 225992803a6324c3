"""Local filesystem document source.

Scans a directory (recursively by default) or reads a single file and
yields one :class:`~src.models.ingestion.SourceText` per readable file.

* Only files whose extension is in ``filesystem_extensions`` are read.
* Files larger than ``filesystem_max_file_size_kb`` are skipped.
* Plain text and Markdown are read as UTF-8; ``.html``/``.htm`` are
  reduced to text with BeautifulSoup; ``.pdf`` pages are extracted with
  PyMuPDF.
* A file that cannot be read or decoded is logged and skipped; the scan
  continues.

``source_type`` and ``department`` are inferred from the name of the
file's parent directory (``hr/``, ``finance/``, ``wiki/`` ...).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Callable

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup

from src.config.settings import Settings
from src.interfaces.source_provider import ISourceProvider
from src.models.ingestion import SourceText
from src.utils.errors import SourceError

logger = structlog.get_logger(logger_name=__name__)

# Parent-directory keyword -> label.  Checked in order, first match wins.
_SOURCE_TYPE_RULES: list[tuple[tuple[str, ...], str]] = [
    (("hr", "human-resources"), "HR"),
    (("finance", "accounting"), "Finance"),
    (("wiki", "docs"), "InternalWiki"),
]
_DEPARTMENT_RULES: list[tuple[tuple[str, ...], str]] = [
    (("hr", "human-resources"), "HR"),
    (("finance",), "Finance"),
    (("product",), "Product"),
    (("sales",), "Sales"),
    (("engineering", "dev"), "Engineering"),
]


def infer_source_type(parent_dir: str) -> str:
    return _match_rule(parent_dir, _SOURCE_TYPE_RULES, "FileSystem")


def infer_department(parent_dir: str) -> str:
    return _match_rule(parent_dir, _DEPARTMENT_RULES, "General")


def _match_rule(value: str, rules: list[tuple[tuple[str, ...], str]], default: str) -> str:
    lower = value.lower()
    for keywords, label in rules:
        if any(k in lower for k in keywords):
            return label
    return default


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _read_html(path: Path) -> str:
    soup = BeautifulSoup(path.read_text(encoding="utf-8"), "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(separator="\n")


def _read_pdf(path: Path) -> str:
    doc = fitz.open(str(path))
    try:
        pages = [doc[n].get_text("text").strip() for n in range(len(doc))]
    finally:
        doc.close()
    return "\n\n".join(p for p in pages if p)


_READERS: dict[str, Callable[[Path], str]] = {
    ".html": _read_html,
    ".htm": _read_html,
    ".pdf": _read_pdf,
}


class FileSystemSourceProvider(ISourceProvider):
    """Document source backed by the local filesystem.

    The selection key is a directory or file path.  An empty key scans
    every directory in ``settings.filesystem_base_paths``.
    """

    def __init__(self, settings: Settings) -> None:
        self._base_paths = list(settings.filesystem_base_paths)
        self._extensions = {
            e.lower() if e.startswith(".") else f".{e.lower()}"
            for e in settings.filesystem_extensions
        }
        self._max_bytes = settings.filesystem_max_file_size_kb * 1024
        self._recursive = settings.filesystem_recursive

    async def iter_documents(self, selection_key: str) -> AsyncIterator[SourceText]:
        roots = [selection_key] if selection_key else self._base_paths
        if not roots:
            raise SourceError(
                message="No path given and FILESYSTEM_BASE_PATHS is empty",
                provider_name=self.get_provider_name(),
            )

        for root in roots:
            root_path = Path(root)
            if not root_path.exists():
                raise SourceError(
                    message=f"Path does not exist: {root}",
                    provider_name=self.get_provider_name(),
                )

            for path in self._candidate_files(root_path):
                document = await asyncio.to_thread(self._read_document, path)
                if document is not None:
                    yield document

    def get_provider_name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return any(Path(p).is_dir() for p in self._base_paths)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _candidate_files(self, root: Path) -> list[Path]:
        if root.is_file():
            return [root] if self._accepts(root) else []
        pattern = root.rglob("*") if self._recursive else root.glob("*")
        return sorted(p for p in pattern if p.is_file() and self._accepts(p))

    def _accepts(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def _read_document(self, path: Path) -> SourceText | None:
        """Read *path* into a SourceText, or return ``None`` to skip it."""
        try:
            stat = path.stat()
            if stat.st_size > self._max_bytes:
                logger.info(
                    "file_skipped_too_large",
                    path=str(path),
                    size_bytes=stat.st_size,
                    max_bytes=self._max_bytes,
                )
                return None

            reader = _READERS.get(path.suffix.lower(), _read_text)
            body = reader(path)
        except (OSError, UnicodeDecodeError, RuntimeError) as exc:
            # PyMuPDF reports corrupt files as RuntimeError subclasses.
            logger.warning("file_read_failed", path=str(path), error=str(exc))
            return None

        if not body.strip():
            logger.debug("file_skipped_blank", path=str(path))
            return None

        absolute = path.resolve()
        parent = absolute.parent.name
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return SourceText(
            document_id=str(absolute),
            title=path.name,
            body=body,
            source_type=infer_source_type(parent),
            url=absolute.as_uri(),
            department=infer_department(parent),
            created_at=modified,
            updated_at=modified,
            custom_fields={
                "filePath": str(absolute),
                "fileSize": stat.st_size,
            },
        )

