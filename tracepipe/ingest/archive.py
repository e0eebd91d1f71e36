"""
TracePipe Archive Expander

Flattens zip and tar containers into raw file entries. Expansion is one
level deep: an archive found inside an archive is passed through as an
opaque file.
"""

import gzip
import io
import logging
import tarfile
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from tracepipe.config import DEFAULT_ARCHIVE_EXTENSIONS
from tracepipe.core.schema import RawFileEntry
from tracepipe.core.user_warnings import CorruptedArchive, PipelineWarning
from tracepipe.core.utils import is_gzip

logger = logging.getLogger(__name__)

ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06")
TAR_MAGIC_OFFSET = 257
TAR_MAGIC = b"ustar"

# Errors the stdlib readers raise on truncated or foreign input
ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    tarfile.TarError,
    NotImplementedError,
    RuntimeError,
    EOFError,
    OSError,
    zlib.error,
    ValueError,
)


class ArchiveKind(Enum):
    """Container formats the expander understands."""

    ZIP = "zip"
    TAR = "tar"


@dataclass
class ExpansionResult:
    """Flat entries plus the warnings raised while expanding."""

    entries: List[RawFileEntry] = field(default_factory=list)
    warnings: List[PipelineWarning] = field(default_factory=list)
    archives_expanded: int = 0


def _looks_like_tar(data: bytes) -> bool:
    return data[TAR_MAGIC_OFFSET:TAR_MAGIC_OFFSET + len(TAR_MAGIC)] == TAR_MAGIC


def _gzipped_tar(data: bytes) -> bool:
    """Peek into a gzip stream and check for a tar header."""
    try:
        with gzip.GzipFile(fileobj=io.BytesIO(data)) as f:
            head = f.read(TAR_MAGIC_OFFSET + len(TAR_MAGIC))
    except (OSError, EOFError, zlib.error):
        return False
    return _looks_like_tar(head)


class ArchiveExpander:
    """
    Expands archive containers found in a batch of input files.

    A container that cannot be opened yields a CorruptedArchive warning and
    contributes no entries. Non-archive inputs pass through untouched.
    """

    def __init__(
        self,
        archive_extensions: Optional[Sequence[str]] = None,
        max_workers: int = 4,
    ):
        self.archive_extensions = tuple(
            ext.lower() for ext in (archive_extensions or DEFAULT_ARCHIVE_EXTENSIONS)
        )
        self.max_workers = max(1, max_workers)

    def detect(self, entry: RawFileEntry) -> Optional[ArchiveKind]:
        """Return the archive kind of an entry, or None for plain files."""
        data = entry.data
        name = entry.name.lower()

        if data[:4] in ZIP_MAGICS:
            return ArchiveKind.ZIP
        if _looks_like_tar(data) or (is_gzip(data) and _gzipped_tar(data)):
            return ArchiveKind.TAR

        # Fall back on the name so truncated archives still get reported
        if name.endswith(self.archive_extensions):
            return ArchiveKind.ZIP if name.endswith(".zip") else ArchiveKind.TAR
        return None

    def expand(self, files: Sequence[RawFileEntry]) -> ExpansionResult:
        """
        Expand every container in files.

        Output order follows input order; members keep archive order.
        """
        result = ExpansionResult()
        if not files:
            return result

        workers = min(len(files), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            slots = list(pool.map(self._expand_one, files))

        for entries, warning, was_archive in slots:
            result.entries.extend(entries)
            if warning is not None:
                result.warnings.append(warning)
            if was_archive:
                result.archives_expanded += 1

        logger.debug(
            f"Expanded {result.archives_expanded} archive(s) into {len(result.entries)} entries"
        )
        return result

    def _expand_one(self, entry: RawFileEntry):
        # Entries that already came out of an archive are never re-expanded
        if entry.origin_archive is not None:
            return [entry], None, False

        kind = self.detect(entry)
        if kind is None:
            return [entry], None, False

        try:
            if kind is ArchiveKind.ZIP:
                members = self._read_zip(entry)
            else:
                members = self._read_tar(entry)
        except ARCHIVE_ERRORS as e:
            logger.warning(f"Corrupted archive {entry.name}: {e}")
            return [], CorruptedArchive(entry.name), True

        logger.info(f"Unzipped {entry.name}: {len(members)} file(s)")
        return members, None, True

    def _read_zip(self, entry: RawFileEntry) -> List[RawFileEntry]:
        members = []
        with zipfile.ZipFile(io.BytesIO(entry.data)) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                members.append(
                    RawFileEntry(
                        name=info.filename,
                        data=zf.read(info),
                        origin_archive=entry.name,
                    )
                )
        return members

    def _read_tar(self, entry: RawFileEntry) -> List[RawFileEntry]:
        members = []
        with tarfile.open(fileobj=io.BytesIO(entry.data), mode="r:*") as tf:
            for member in tf.getmembers():
                if not member.isfile():
                    continue
                f = tf.extractfile(member)
                if f is None:
                    continue
                members.append(
                    RawFileEntry(
                        name=member.name,
                        data=f.read(),
                        origin_archive=entry.name,
                    )
                )
        return members
