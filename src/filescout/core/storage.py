"""
Flat-file stores for the index, crawl marker, history and lookup counts.

All files live in the data directory. Writes replace or append whole records
and the last writer wins; there is no locking between processes.
"""

import json
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..errors import StorageError
from ..models.items import HistoryEntry, IndexedItem, SearchIndex


logger = logging.getLogger(__name__)

INDEX_FILE = "index.jsonl"
CRAWL_MARKER_FILE = "last_crawl.txt"
HISTORY_FILE = "history.jsonl"
LOOKUPS_FILE = "lookups.json"

_LOOKUP_ADAPTER = TypeAdapter(Dict[str, int])


class IndexHeader(BaseModel):
    """First line of the index file."""
    root: str = Field(..., min_length=1)
    crawled_at: datetime
    item_count: int = Field(0, ge=0)


def _replace_file(path: Path, content: str) -> None:
    """Write to a sibling temp file and move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(content)
    os.replace(tmp_path, path)


class IndexFile:
    """Index store: a header line followed by one item per line, best first."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, index: SearchIndex) -> None:
        """
        Persist an index.

        Raises:
            StorageError: If the file cannot be written
        """
        header = IndexHeader(root=index.root, crawled_at=index.crawled_at, item_count=index.get_item_count())
        lines = [header.model_dump_json()]
        lines.extend(item.model_dump_json() for item in index.items)
        try:
            _replace_file(self.path, "\n".join(lines) + "\n")
        except OSError as e:
            raise StorageError(f"Cannot write index file {self.path}: {e}") from e
        logger.info(f"Saved index with {header.item_count} items to {self.path}")

    def load(self) -> Optional[SearchIndex]:
        """
        Load the persisted index, or None if there is none yet.

        Raises:
            StorageError: If the file exists but cannot be read or parsed
        """
        if not self.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                header_line = f.readline()
                if not header_line.strip():
                    return None
                header = IndexHeader.model_validate_json(header_line)
                items = [IndexedItem.model_validate_json(line) for line in f if line.strip()]
        except OSError as e:
            raise StorageError(f"Cannot read index file {self.path}: {e}") from e
        except ValidationError as e:
            raise StorageError(f"Corrupt index file {self.path}: {e}") from e

        return SearchIndex(root=header.root, items=items, crawled_at=header.crawled_at)


class CrawlMarker:
    """Calendar date of the last successful crawl."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def last_crawl_date(self) -> Optional[date]:
        if not self.path.is_file():
            return None
        try:
            text = self.path.read_text(encoding='utf-8').strip()
        except OSError as e:
            raise StorageError(f"Cannot read crawl marker {self.path}: {e}") from e
        try:
            return date.fromisoformat(text)
        except ValueError:
            logger.warning(f"Ignoring unreadable crawl marker {self.path}: {text!r}")
            return None

    def mark(self, day: date) -> None:
        try:
            _replace_file(self.path, day.isoformat() + "\n")
        except OSError as e:
            raise StorageError(f"Cannot write crawl marker {self.path}: {e}") from e

    def is_current(self, today: date) -> bool:
        return self.last_crawl_date() == today


class HistoryFile:
    """Append-only history records, newest last."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[HistoryEntry]:
        """
        Read all history entries in file order.

        Raises:
            StorageError: If the file cannot be read
        """
        if not self.path.is_file():
            return []
        entries = []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                for line_no, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    try:
                        entries.append(HistoryEntry.model_validate_json(line))
                    except ValidationError as e:
                        logger.warning(f"Skipping bad history line {line_no} in {self.path}: {e}")
        except OSError as e:
            raise StorageError(f"Cannot read history file {self.path}: {e}") from e
        return entries

    def append(self, entry: HistoryEntry) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            raise StorageError(f"Cannot append to history file {self.path}: {e}") from e


class LookupCountFile:
    """Open counts keyed by full path, rewritten whole on every save."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, int]:
        if not self.path.is_file():
            return {}
        try:
            return _LOOKUP_ADAPTER.validate_json(self.path.read_bytes())
        except OSError as e:
            raise StorageError(f"Cannot read lookup counts {self.path}: {e}") from e
        except ValidationError as e:
            raise StorageError(f"Corrupt lookup counts {self.path}: {e}") from e

    def save(self, counts: Dict[str, int]) -> None:
        try:
            _replace_file(self.path, json.dumps(counts, indent=1, sort_keys=True))
        except OSError as e:
            raise StorageError(f"Cannot write lookup counts {self.path}: {e}") from e


class DataDirectory:
    """The set of stores under one data directory."""

    def __init__(self, data_dir: Union[str, Path]):
        self.root = Path(data_dir).expanduser()
        self.index = IndexFile(self.root / INDEX_FILE)
        self.crawl_marker = CrawlMarker(self.root / CRAWL_MARKER_FILE)
        self.history = HistoryFile(self.root / HISTORY_FILE)
        self.lookups = LookupCountFile(self.root / LOOKUPS_FILE)

    def ensure(self) -> None:
        """
        Create the data directory.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.root}: {e}") from e

    @property
    def log_file(self) -> Path:
        return self.root / "filescout.log"
