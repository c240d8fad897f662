from __future__ import annotations

"""cli.common

Small shared helpers for CLI command modules.
"""

from pathlib import Path
from typing import Optional


def parse_csv(raw: Optional[str]) -> Optional[list[str]]:
    """Parse a comma-separated flag value. ``None`` when the flag was not given."""
    if raw is None:
        return None
    return [x.strip() for x in raw.split(",") if x.strip()]


def optional_path(raw: Optional[str]) -> Optional[Path]:
    if not raw:
        return None
    return Path(raw).expanduser().resolve()
