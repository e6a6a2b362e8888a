"""
ThreatWatch Catalog Loader

Reads YAML catalogs (signatures, correlation rules, baseline seeds).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..exceptions import CatalogError

logger = logging.getLogger(__name__)


def read_catalog(path: Path) -> Dict[str, Any]:
    """
    Load a YAML catalog file.

    Args:
        path: Catalog file

    Returns:
        Top-level mapping (empty if the file is empty)

    Raises:
        CatalogError: If the file is missing, unreadable or not a mapping
    """
    if not path.exists():
        raise CatalogError(f"Catalog file does not exist: {path}")

    yaml = YAML(typ="safe")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as e:
        raise CatalogError(f"Failed to read catalog {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {path} must contain a mapping at the top level")
    return data


def catalog_entries(path: Path, section: str) -> List[Dict[str, Any]]:
    """Return the list stored under ``section``, skipping non-mapping entries."""
    entries = read_catalog(path).get(section) or []
    if not isinstance(entries, list):
        raise CatalogError(f"'{section}' in {path} must be a list")

    valid = []
    for index, entry in enumerate(entries):
        if isinstance(entry, dict):
            valid.append(entry)
        else:
            logger.warning(f"Skipping {section}[{index}] in {path}: not a mapping")
    return valid
