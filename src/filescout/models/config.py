"""
Configuration data models for filescout.

This module defines the settings for the search root, the data directory
holding the index and history files, crawl ignore patterns, session timing
and result limits.
"""

from typing import Dict, List, Optional, Any
from pathlib import Path
import fnmatch
from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_DATA_DIR = "~/.filescout"


class SessionConfig(BaseModel):
    """
    Configuration for the interactive session loop.

    Attributes:
        tick_interval: Seconds between control-loop ticks
        sleep_tick_interval: Seconds between ticks while sleeping
        sleep_after: Idle seconds before the session goes to sleep
        shutdown_after: Idle seconds before the session exits
        visible_rows: Number of result rows shown at once
        status_seconds: How long transient status messages stay visible
        auto_crawl: Crawl on start when the index is missing or not from today
    """

    tick_interval: float = Field(0.02, gt=0, description="Seconds between control-loop ticks")
    sleep_tick_interval: float = Field(1.0, gt=0, description="Seconds between ticks while sleeping")
    sleep_after: float = Field(60.0, gt=0, description="Idle seconds before sleeping")
    shutdown_after: float = Field(600.0, gt=0, description="Idle seconds before exiting")
    visible_rows: int = Field(20, gt=0, description="Number of result rows shown at once")
    status_seconds: float = Field(3.0, gt=0, description="Lifetime of transient status messages")
    auto_crawl: bool = Field(True, description="Crawl on start when the index is stale")

    @model_validator(mode='after')
    def validate_timers(self):
        """Sleep must come before shutdown."""
        if self.sleep_after >= self.shutdown_after:
            raise ValueError("sleep_after must be shorter than shutdown_after")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class LimitsConfig(BaseModel):
    """
    Configuration for result limits and concurrency.

    Attributes:
        result_cap: Maximum number of results for a bounded query
        max_concurrent: Worker threads shared by crawl, query and open jobs
    """

    result_cap: int = Field(50, gt=0, le=10000, description="Maximum results for a bounded query")
    max_concurrent: int = Field(4, ge=2, description="Background worker threads")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class ScoutConfig(BaseModel):
    """
    Main configuration class for filescout.

    Attributes:
        search_root: Directory tree to index
        data_dir: Directory holding the index, marker, history and lookup files
        ignore: Entry names (fnmatch patterns) pruned from the crawl
        session: Interactive session settings
        limits: Result limits and concurrency
    """

    search_root: str = Field(default_factory=lambda: str(Path.home()), description="Directory tree to index")
    data_dir: str = Field(DEFAULT_DATA_DIR, description="Directory holding filescout state")
    ignore: List[str] = Field(
        default_factory=lambda: [
            ".git",
            ".svn",
            ".hg",
            "node_modules",
            "__pycache__",
            ".pytest_cache",
            ".venv",
            "venv",
        ],
        description="Entry names pruned from the crawl"
    )
    session: SessionConfig = Field(default_factory=SessionConfig, description="Interactive session settings")
    limits: LimitsConfig = Field(default_factory=LimitsConfig, description="Result limits and concurrency")

    @field_validator('search_root', 'data_dir')
    @classmethod
    def validate_paths(cls, v: str) -> str:
        """Expand user paths; the search root is checked when a crawl starts."""
        if not v or not v.strip():
            raise ValueError("Path cannot be empty")
        return str(Path(v.strip()).expanduser())

    @field_validator('ignore')
    @classmethod
    def validate_ignore_patterns(cls, v: List[str]) -> List[str]:
        """Drop blanks and comments, strip path decoration from names."""
        normalized = []
        for pattern in v:
            if not pattern or not pattern.strip():
                continue
            pattern = pattern.strip()
            if pattern.startswith('#'):
                continue
            normalized.append(pattern.strip('/'))
        return normalized

    def should_ignore(self, name: str) -> bool:
        """Check if an entry name matches any ignore pattern."""
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore)

    def get_data_path(self) -> Path:
        """Get the resolved data directory."""
        return Path(self.data_dir).resolve()

    def get_root_path(self) -> Path:
        """Get the resolved search root."""
        return Path(self.search_root).resolve()

    def validate_configuration(self) -> List[str]:
        """
        Check the configuration for non-fatal problems.

        Returns:
            List of warning messages
        """
        warnings = []
        root = Path(self.search_root)
        if not root.exists():
            warnings.append(f"Search root does not exist: {root}")
        elif not root.is_dir():
            warnings.append(f"Search root is not a directory: {root}")

        if self.limits.result_cap > 1000:
            warnings.append("Very high result_cap may slow down every keystroke")

        if self.session.tick_interval > 0.2:
            warnings.append("tick_interval above 0.2s makes typing feel sluggish")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data = self.model_dump()
        data['session'] = self.session.to_dict()
        data['limits'] = self.limits.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoutConfig':
        """Create configuration from dictionary."""
        return cls.model_validate(data)

    def with_overrides(self, search_root: Optional[str] = None, data_dir: Optional[str] = None) -> 'ScoutConfig':
        """Return a copy with command line overrides applied."""
        data = self.model_dump()
        if search_root:
            data['search_root'] = search_root
        if data_dir:
            data['data_dir'] = data_dir
        return ScoutConfig.model_validate(data)

    def __str__(self) -> str:
        return f"ScoutConfig(root={self.search_root}, data_dir={self.data_dir}, ignore={len(self.ignore)} patterns)"
