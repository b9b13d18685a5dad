from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Settings:
    redis_url: Optional[str]
    redis_url_source: Optional[str]
    data_dir: Path
    local_store_path: Path
    environment: str
    log_level: str

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url)


def _first_env(*names: str) -> tuple[Optional[str], Optional[str]]:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value, name
    return None, None


def get_settings() -> Settings:
    # KV_URL / UPSTASH_REDIS_URL are the names hosted Redis providers inject
    redis_url, source = _first_env("REDIS_URL", "KV_URL", "UPSTASH_REDIS_URL")
    data_dir = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
    return Settings(
        redis_url=redis_url,
        redis_url_source=source,
        data_dir=data_dir,
        local_store_path=Path(os.getenv("LOCAL_STORE_PATH", str(data_dir / "local_store.json"))),
        environment=os.getenv("ENVIRONMENT", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
