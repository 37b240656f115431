"""
Record Loader — Flatten the records of every data file into one list.

Each file directly under <mirror>/<data_dir> must be a JSON object with an
array under `records_field`:

    {"sgciResources": [{"id": "...", "name": "..."}, ...]}

Files are read in directory listing order, which the filesystem does not
guarantee to be stable. One bad file aborts the whole load.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Union

from ..errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"
DEFAULT_RECORDS_FIELD = "sgciResources"


def load_file(path: Path, records_field: str = DEFAULT_RECORDS_FIELD) -> List[Any]:
    """
    Read the records array from one data file.

    Raises:
        ParseError: Invalid JSON, not an object, or no array under records_field
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path, f"cannot read file: {e}") from e
    except json.JSONDecodeError as e:
        raise ParseError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(path, "top-level value is not a JSON object")

    if records_field not in data:
        raise ParseError(path, f"missing '{records_field}' field")

    records = data[records_field]
    if not isinstance(records, list):
        raise ParseError(path, f"'{records_field}' is not an array")

    return records


def load_all(
    mirror_path: Union[str, Path],
    data_dir: str = DEFAULT_DATA_DIR,
    records_field: str = DEFAULT_RECORDS_FIELD,
) -> List[Any]:
    """
    Load every record from the mirror's data directory.

    Args:
        mirror_path: Root of the local working copy
        data_dir: Subdirectory holding the data files
        records_field: Name of the array field in each file

    Returns:
        All records, file by file in listing order. Empty if the data
        directory does not exist.

    Raises:
        ParseError: A data file does not conform (no partial result)
    """
    directory = Path(mirror_path) / data_dir

    if not directory.is_dir():
        logger.info(f"No data directory at {directory}, nothing to load")
        return []

    records: List[Any] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.is_file():
                continue

            path = Path(entry.path)
            logger.info(f"Processing file {path}")
            records.extend(load_file(path, records_field))

    logger.info(f"Loaded {len(records)} record(s) from {directory}")
    return records
