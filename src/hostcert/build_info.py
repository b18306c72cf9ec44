"""Version metadata reported by the API health probe.

Installed builds read the distribution version; ``HOSTCERT_BUILD_VERSION`` and
``HOSTCERT_BUILD_DATE`` let a packaging pipeline stamp canonical values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from importlib import metadata
from typing import Final


def _compute_version() -> str:
    explicit = os.getenv("HOSTCERT_BUILD_VERSION")
    if explicit:
        return explicit
    try:
        return metadata.version("hostcert")
    except metadata.PackageNotFoundError:
        return "0.1.0"


def _compute_build_date() -> str:
    return os.getenv("HOSTCERT_BUILD_DATE") or datetime.now(tz=timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class BuildInfo:
    version: str
    build_date: str


BUILD_INFO: Final[BuildInfo] = BuildInfo(version=_compute_version(), build_date=_compute_build_date())
