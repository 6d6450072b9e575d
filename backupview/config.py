"""Application configuration: JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path
from typing import Any, Iterator, TypeVar

from loguru import logger

from backupview.core.aggregator import CHART_DAY_CHOICES
from backupview.models.view import GroupMode, Selection, SortDirection, SortKey

_instance: "Config | None" = None

_DEFAULT_DATA_DIR = Path.home() / ".backupview"

_E = TypeVar("_E", bound=StrEnum)


def get_config() -> Config:
    """Module-level factory: single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "log_level": "INFO",
        # Where the polling layer drops its state dumps
        "state_path": "",
        "state_url": "",
        "request_timeout": 10.0,
        # View defaults (what "reset filters" returns to)
        "view": {
            "sort_key": "timestamp",
            "sort_direction": "desc",
            "group_by": "date",
            "chart_days": 30,
            "chart_day_choices": list(CHART_DAY_CHOICES),
            "use_relative_time": False,
        },
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _enum(self, key: str, enum_type: type[_E], fallback: _E) -> _E:
        raw = self.get(key)
        try:
            return enum_type(raw)
        except ValueError:
            logger.warning(f"Invalid {key} {raw!r} in config, using {fallback}")
            return fallback

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def log_dir(self) -> Path:
        return self._dir / "logs"

    @property
    def log_level(self) -> str:
        return str(self._data.get("log_level", "INFO")).upper()

    @property
    def state_path(self) -> Path | None:
        raw = self._data.get("state_path", "")
        return Path(raw) if raw else None

    @state_path.setter
    def state_path(self, value: Path | None) -> None:
        self.set("state_path", str(value) if value else "")

    @property
    def state_url(self) -> str:
        return self._data.get("state_url", "")

    @property
    def request_timeout(self) -> float:
        return float(self._data.get("request_timeout", 10.0))

    @property
    def default_sort_key(self) -> SortKey:
        return self._enum("view.sort_key", SortKey, SortKey.TIMESTAMP)

    @default_sort_key.setter
    def default_sort_key(self, value: SortKey) -> None:
        self.set("view.sort_key", str(value))

    @property
    def default_sort_direction(self) -> SortDirection:
        return self._enum("view.sort_direction", SortDirection, SortDirection.DESC)

    @default_sort_direction.setter
    def default_sort_direction(self, value: SortDirection) -> None:
        self.set("view.sort_direction", str(value))

    @property
    def default_group_by(self) -> GroupMode:
        return self._enum("view.group_by", GroupMode, GroupMode.DATE)

    @default_group_by.setter
    def default_group_by(self, value: GroupMode) -> None:
        self.set("view.group_by", str(value))

    @property
    def chart_day_choices(self) -> list[int]:
        raw = self.get("view.chart_day_choices", [])
        choices = [int(d) for d in raw if isinstance(d, int) and d > 0]
        return choices or list(CHART_DAY_CHOICES)

    @property
    def chart_days(self) -> int:
        raw = self.get("view.chart_days", 30)
        if raw not in self.chart_day_choices:
            logger.warning(f"Unsupported chart window {raw!r}, using 30 days")
            return 30
        return int(raw)

    @chart_days.setter
    def chart_days(self, value: int) -> None:
        self.set("view.chart_days", value)

    @property
    def use_relative_time(self) -> bool:
        return bool(self.get("view.use_relative_time", False))

    def default_selection(self) -> Selection:
        """The selection a "reset filters" action returns to."""
        return Selection(
            sort_key=self.default_sort_key,
            sort_direction=self.default_sort_direction,
            group_by=self.default_group_by,
            chart_days=self.chart_days,
        )

    def save_defaults(self, selection: Selection, state_path: Path | None = None) -> None:
        """Persist the sort, grouping and chart window of *selection* in one write."""
        with self.batch_update():
            self.default_sort_key = selection.sort_key
            self.default_sort_direction = selection.sort_direction
            self.default_group_by = selection.group_by
            self.chart_days = selection.chart_days
            if state_path is not None:
                self.state_path = state_path.resolve()
