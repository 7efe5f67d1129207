"""
PURPOSE: Manage version information for the alert engine.

Reads version data from version.json (shipped inside the package) and
exposes it through get_version(). The data is cached after the first read.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

_version_cache: Optional[Dict[str, Any]] = None

VERSION_FILE: Path = Path(__file__).parent / "version.json"


def get_version() -> Dict[str, Any]:
    """
    PURPOSE: Retrieve version information for the alert engine.

    Returns:
        Dict[str, Any]: version, codename and updated_at.

    Raises:
        FileNotFoundError: If version.json is missing from the package.
        json.JSONDecodeError: If version.json is invalid JSON.
    """
    global _version_cache

    if _version_cache is not None:
        return _version_cache

    with open(VERSION_FILE, "r") as f:
        _version_cache = json.load(f)

    return _version_cache
