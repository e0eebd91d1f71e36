"""
TracePipe Configuration
Pipeline tunables with YAML loading.
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BUGREPORT_TRACE_DIRS = [
    "FS/data/misc/wmtrace/",
    "FS/data/misc/perfetto-traces/",
    "proto/window_CRITICAL.proto",
    "proto/input_method_CRITICAL.proto",
    "proto/SurfaceFlinger_CRITICAL.proto",
]

DEFAULT_ARCHIVE_EXTENSIONS = [".zip", ".tar", ".tgz", ".tar.gz"]


@dataclass
class PipelineConfig:
    """Configuration for a TracePipeline instance."""

    # Upper bound for the expansion/decode thread pools
    max_workers: int = field(default_factory=lambda: min(8, os.cpu_count() or 1))

    # Directory prefixes inside a bugreport that may hold traces
    bugreport_trace_dirs: List[str] = field(
        default_factory=lambda: list(DEFAULT_BUGREPORT_TRACE_DIRS)
    )

    archive_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_ARCHIVE_EXTENSIONS)
    )

    decompress_gzip: bool = True

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        unknown = set(data) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**known)

    @classmethod
    def from_yaml(cls, path: Optional[Union[str, Path]]) -> "PipelineConfig":
        """
        Load configuration from a YAML file.

        The file may hold the settings at top level or under a
        'pipeline' key. A missing file yields the defaults.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            logger.warning(f"Config not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if "pipeline" in data:
            data = data["pipeline"] or {}

        config = cls.from_dict(data)
        logger.info(f"Loaded pipeline config from {path}")
        return config
