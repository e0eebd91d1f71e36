"""
TracePipe Bugreport Classifier

Recognises a device bugreport bundle among the expanded inputs, extracts its
timezone metadata and narrows the bundle to the directories that can hold
traces. Files outside the bundle are never filtered.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from tracepipe.config import DEFAULT_BUGREPORT_TRACE_DIRS
from tracepipe.core.schema import RawFileEntry

logger = logging.getLogger(__name__)

MAIN_ENTRY_NAME = "main_entry.txt"
BUGREPORT_NAME_REGEX = re.compile(r"^bugreport-.*\.txt$")
TIMEZONE_REGEX = re.compile(r"\[persist\.sys\.timezone\]: \[(.+?)\]")
LOCALE_REGEX = re.compile(r"\[persist\.sys\.locale\]: \[(.+?)\]")


@dataclass(frozen=True)
class TimezoneInfo:
    """Timezone metadata recorded by the device."""

    timezone: str
    locale: str = "en-US"


@dataclass
class BugreportBundle:
    """A detected bugreport bundle."""

    origin: Optional[str]  # archive name, None for loose files
    main_entry: RawFileEntry
    bugreport_file: RawFileEntry
    timezone_info: Optional[TimezoneInfo] = None


@dataclass
class ClassificationResult:
    """Usable entries after bugreport filtering."""

    entries: List[RawFileEntry] = field(default_factory=list)
    bugreport: Optional[BugreportBundle] = None
    ignored_bundles: List[BugreportBundle] = field(default_factory=list)
    dropped_count: int = 0

    @property
    def is_bugreport(self) -> bool:
        return self.bugreport is not None

    @property
    def timezone_info(self) -> Optional[TimezoneInfo]:
        return self.bugreport.timezone_info if self.bugreport else None


def parse_timezone_info(text: str) -> Optional[TimezoneInfo]:
    """Pull persist.sys.timezone / persist.sys.locale out of bugreport text."""
    tz_match = TIMEZONE_REGEX.search(text)
    if not tz_match:
        return None
    locale_match = LOCALE_REGEX.search(text)
    return TimezoneInfo(
        timezone=tz_match.group(1).strip(),
        locale=locale_match.group(1).strip() if locale_match else "en-US",
    )


class BugreportClassifier:
    """
    Detects bugreport bundles and filters their contents.

    A bundle is a group of entries with the same origin that contains the
    main_entry.txt manifest and the bugreport-*.txt file it names.

    Only the first bundle in input order is treated as the batch's
    bugreport. Later bundles are directory-filtered the same way but their
    timezone metadata is ignored.
    """

    def __init__(self, trace_dirs: Optional[Sequence[str]] = None):
        self.trace_dirs = tuple(trace_dirs or DEFAULT_BUGREPORT_TRACE_DIRS)

    def classify(self, entries: Sequence[RawFileEntry]) -> ClassificationResult:
        groups: Dict[Optional[str], List[RawFileEntry]] = OrderedDict()
        for entry in entries:
            groups.setdefault(entry.origin_archive, []).append(entry)

        bundles: Dict[Optional[str], BugreportBundle] = {}
        for origin, group in groups.items():
            bundle = self._detect(origin, group)
            if bundle is not None:
                bundles[origin] = bundle

        result = ClassificationResult()
        for origin, bundle in bundles.items():
            if result.bugreport is None:
                result.bugreport = bundle
                logger.info(f"Detected bugreport {bundle.bugreport_file.name}")
            else:
                result.ignored_bundles.append(bundle)
                logger.warning(
                    f"Multiple bugreports in one batch: only "
                    f"{result.bugreport.bugreport_file.name} provides timezone info, "
                    f"{bundle.bugreport_file.name} is only filtered"
                )

        for entry in entries:
            if entry.origin_archive in bundles and not self.is_trace_path(entry.name):
                result.dropped_count += 1
                continue
            result.entries.append(entry)

        if result.dropped_count:
            logger.debug(f"Dropped {result.dropped_count} non-trace bugreport file(s)")
        return result

    def is_trace_path(self, name: str) -> bool:
        return name.startswith(self.trace_dirs)

    def _detect(
        self, origin: Optional[str], group: List[RawFileEntry]
    ) -> Optional[BugreportBundle]:
        by_name = {entry.name: entry for entry in group}
        main_entry = by_name.get(MAIN_ENTRY_NAME)
        if main_entry is None:
            return None

        target = main_entry.data.decode("utf-8", errors="replace").strip()
        bugreport_file = by_name.get(target)
        if bugreport_file is None:
            bugreport_file = next(
                (e for e in group if BUGREPORT_NAME_REGEX.match(e.name)), None
            )
        if bugreport_file is None:
            logger.debug(f"{MAIN_ENTRY_NAME} without bugreport file in {origin or 'input'}")
            return None

        text = bugreport_file.data.decode("utf-8", errors="replace")
        return BugreportBundle(
            origin=origin,
            main_entry=main_entry,
            bugreport_file=bugreport_file,
            timezone_info=parse_timezone_info(text),
        )
