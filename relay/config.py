"""Runtime configuration, read from ``RELAY_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class Settings:
    """Server settings."""

    access_token: str = ""
    data_dir: Path = Path("./data")
    host: str = "0.0.0.0"
    port: int = 3000
    notify_url: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            access_token=os.environ.get("RELAY_ACCESS_TOKEN", ""),
            data_dir=Path(os.environ.get("RELAY_DATA_DIR", "./data")),
            host=os.environ.get("RELAY_HOST", "0.0.0.0"),
            port=int(os.environ.get("RELAY_PORT", "3000")),
            notify_url=os.environ.get("RELAY_NOTIFY_URL", ""),
            log_level=os.environ.get("RELAY_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def files_dir(self) -> Path:
        return self.data_dir / "files"

    @property
    def snapshot_path(self) -> Path:
        return self.logs_dir / "agents.json"
