"""
Insights Service
================
Persistence for the editable narrative blocks shown next to the statements:
free-text "insights" and structured "key change" records.

Values live in Redis as JSON under fixed keys. When no Redis URL is
configured the service falls back to a local JSON file so the dashboard keeps
working on a laptop.
"""

import json
import os
import re
import tempfile
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from api.config import Settings, get_settings
from api.store import get_redis
from app_logging import get_logger

logger = get_logger(__name__)

INSIGHTS_KEY = "dashboard:insights"
CHANGES_KEY = "dashboard:changes"


class InsightsValidationError(ValueError):
    """Raised when a submitted insights or changes payload is malformed."""


DEFAULT_INSIGHTS: List[str] = [
    "**Year-end cash of 6,200**: the balance rises from 5,000 to 6,200 (**+1,200**) "
    "as net cash flow improves from 800 to 1,200.",
    "**Operating cash flow up 940**: from 1,100 to 2,040, driven by higher sales receipts "
    "and lower goods payments.",
    "**Online channel drives sales receipts**: online (US+EU) grows by 820 to 21,720 (**+3.9%**), "
    "about 90% of sales receipts, while wholesale (**-140**) and licence (**-240**) receipts fall.",
    "**Goods payments down 400** (4,000 -> 3,600, **-10%**); expense payments hold at 18,600 "
    "as lower commissions and other expenses offset payroll (**+300**) and advertising (**+100**).",
    "**Inventory reduced by 49%**: from 4,900 to 2,500, speeding up cash conversion.",
    "**Financing outflow widens to 840**: other payments rise to 1,440 (**+640**) "
    "while borrowings stay at 3,000 all year.",
]


@dataclass
class ChangeItem:
    title: str
    value: str
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeItem":
        if not isinstance(data, dict):
            raise InsightsValidationError("Each change must be an object")
        title, value = data.get("title"), data.get("value")
        if not isinstance(title, str) or not isinstance(value, str):
            raise InsightsValidationError("Each change needs string 'title' and 'value'")
        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise InsightsValidationError("'description' must be a string")
        return cls(title=title, value=value, description=description)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_CHANGES: List[ChangeItem] = [
    ChangeItem("Year-end cash", "6,200 (+1,200)",
               "Ending balance 5,000 -> 6,200; net cash flow 800 -> 1,200"),
    ChangeItem("Operating cash flow", "+940 (1,100 -> 2,040)",
               "Sales receipts +440, goods payments 400 lower"),
    ChangeItem("Online channel growth", "+820 (20,900 -> 21,720)",
               "Online (US+EU) is 90% of sales receipts"),
    ChangeItem("Inventory efficiency", "-2,400 (4,900 -> 2,500)",
               "49% inventory reduction improves cash conversion"),
    ChangeItem("Expense payments", "100 lower (-18,700 -> -18,600)",
               "Commissions -200, other expenses -300; payroll +300, advertising +100"),
    ChangeItem("Financing activities", "-840 (from -300)",
               "Other payments 800 -> 1,440; borrowings unchanged at 3,000"),
]


# =============================================================================
# KEY-VALUE STORES
# =============================================================================

class RedisKVStore:
    """JSON values in Redis."""

    backend = "redis"

    def __init__(self, client):
        self.client = client

    def get(self, key: str) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.client.set(key, json.dumps(value, ensure_ascii=False))


# One lock per file, shared by every store instance in the process
_FILE_LOCKS: Dict[Path, threading.Lock] = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _file_lock(path: Path) -> threading.Lock:
    with _FILE_LOCKS_GUARD:
        return _FILE_LOCKS.setdefault(path.resolve(), threading.Lock())


class LocalJSONStore:
    """All keys in one JSON file; used when Redis is not configured."""

    backend = "local"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = _file_lock(self.path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        return json.loads(text) if text.strip() else {}

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent,
                prefix=f"{self.path.name}.", suffix=".tmp", delete=False,
            ) as tmp:
                json.dump(data, tmp, ensure_ascii=False, indent=2)
            try:
                os.replace(tmp.name, self.path)
            except OSError:
                os.unlink(tmp.name)
                raise


def get_kv_store(settings: Optional[Settings] = None):
    """Redis when configured, otherwise the local JSON file."""
    settings = settings or get_settings()
    client = get_redis(settings)
    if client is not None:
        return RedisKVStore(client)
    logger.info("No Redis URL configured, storing insights in %s", settings.local_store_path)
    return LocalJSONStore(settings.local_store_path)


def _mask_url(url: str) -> str:
    masked = re.sub(r"://([^:@/]*):([^@/]+)@", r"://\1:***@", url)
    return masked[:30] + "..." if len(masked) > 30 else masked


def store_status(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Which persistence backend is active, without leaking credentials."""
    settings = settings or get_settings()
    return {
        "redis_configured": settings.redis_configured,
        "backend": "redis" if settings.redis_configured else "local",
        "redis_url_env": settings.redis_url_source,
        "redis_url_preview": _mask_url(settings.redis_url) if settings.redis_url else "Not set",
        "local_store_path": str(settings.local_store_path),
        "environment": settings.environment,
    }


# =============================================================================
# SERVICE
# =============================================================================

class InsightsService:
    """
    Read and write the dashboard narrative.

    Reads never fail: an empty or unreachable store yields the defaults.
    Writes validate the payload and let store errors propagate.
    """

    def __init__(self, store):
        """
        Args:
            store: RedisKVStore or LocalJSONStore (anything with get/set)
        """
        self.store = store

    def _read(self, key: str) -> Any:
        try:
            return self.store.get(key)
        except (RedisError, OSError, ValueError) as e:
            logger.warning("Could not read %s from %s store: %s", key, self.store.backend, e)
            return None

    def get_insights(self) -> List[str]:
        value = self._read(INSIGHTS_KEY)
        if value is None or not isinstance(value, list):
            return list(DEFAULT_INSIGHTS)
        return [str(v) for v in value]

    def save_insights(self, insights: Any) -> List[str]:
        if not isinstance(insights, list) or not all(isinstance(i, str) for i in insights):
            raise InsightsValidationError("Invalid insights format: expected a list of strings")
        self.store.set(INSIGHTS_KEY, insights)
        logger.info("Saved %d insights to %s store", len(insights), self.store.backend)
        return list(insights)

    def get_changes(self) -> List[ChangeItem]:
        value = self._read(CHANGES_KEY)
        if value is None or not isinstance(value, list):
            return list(DEFAULT_CHANGES)
        try:
            return [ChangeItem.from_dict(v) for v in value]
        except InsightsValidationError as e:
            logger.warning("Stored changes are malformed, using defaults: %s", e)
            return list(DEFAULT_CHANGES)

    def save_changes(self, changes: Any) -> List[ChangeItem]:
        if not isinstance(changes, list):
            raise InsightsValidationError("Invalid changes format: expected a list")
        items = [c if isinstance(c, ChangeItem) else ChangeItem.from_dict(c) for c in changes]
        self.store.set(CHANGES_KEY, [i.to_dict() for i in items])
        logger.info("Saved %d changes to %s store", len(items), self.store.backend)
        return items
