"""
corereloc/config.py
═══════════════════

Target data model and logging setup.

``TargetConfig`` describes the ABI the layouts are computed for.  The
defaults match a 64-bit little-endian target (BPF, x86-64, arm64):
8-byte pointers, integer alignment capped at the pointer size, 4-byte
enums.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, fields
from typing import Any, Mapping

_log = logging.getLogger("corereloc")


@dataclass(frozen=True)
class TargetConfig:
    """Configuration for graph building, layout and relocation."""
    # Data model
    pointer_size: int = 8
    little_endian: bool = True
    default_enum_size: int = 4

    # Relocation
    check_array_bounds: bool = True
    max_path_value: int = 0xFFFF_FFFF

    def __post_init__(self) -> None:
        if self.pointer_size not in (4, 8):
            raise ValueError(f"unsupported pointer size: {self.pointer_size}")
        if self.default_enum_size not in (1, 2, 4, 8):
            raise ValueError(f"unsupported enum size: {self.default_enum_size}")

    @property
    def max_int_alignment(self) -> int:
        """Integers larger than a pointer are aligned to the pointer size."""
        return self.pointer_size

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TargetConfig:
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown TargetConfig keys: {', '.join(unknown)}")
        return cls(**dict(data))


DEFAULT_CONFIG = TargetConfig()


def configure_logging(verbosity: int) -> None:
    """Set up the ``corereloc`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    _log.setLevel(level)
    _log.addHandler(handler)
