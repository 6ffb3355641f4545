"""
Settings for the cloud sync engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..sync.google_drive import DEFAULT_SYNC_FILE_NAME, GoogleDriveConfig


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ServerConfig:
    """HTTP control surface settings."""
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class CloudSyncSettings:
    """Top-level configuration."""
    data_dir: Path = Path("data")
    sync_file_name: str = DEFAULT_SYNC_FILE_NAME
    token_encryption_key: Optional[str] = None
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8080/oauth/callback"
    http_timeout: float = 30.0
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: LogLevel = LogLevel.INFO

    @property
    def config_dir(self) -> Path:
        return self.data_dir / "config"

    @property
    def tokens_dir(self) -> Path:
        return self.data_dir / ".tokens"

    @property
    def document_path(self) -> Path:
        return self.data_dir / "document.json"

    def google_drive_config(self) -> GoogleDriveConfig:
        return GoogleDriveConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            redirect_uri=self.google_redirect_uri,
            sync_file_name=self.sync_file_name,
            timeout_seconds=self.http_timeout,
        )
