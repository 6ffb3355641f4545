"""
Environment variable handling for cloud sync configuration.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from ..sync.google_drive import DEFAULT_SYNC_FILE_NAME
from .settings import CloudSyncSettings, LogLevel, ServerConfig


class EnvironmentLoader:
    """Loads configuration from environment variables."""

    @staticmethod
    def load_settings(load_env_file: bool = True) -> CloudSyncSettings:
        """Load settings from the environment (and a .env file if present)."""
        if load_env_file:
            load_dotenv()

        server = ServerConfig(
            host=os.getenv('CLOUD_SYNC_HOST', '127.0.0.1'),
            port=int(os.getenv('CLOUD_SYNC_PORT', '8080')),
        )

        log_level = LogLevel.INFO
        try:
            log_level = LogLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
        except ValueError:
            pass  # Use default

        return CloudSyncSettings(
            data_dir=Path(os.getenv('CLOUD_SYNC_DATA_DIR', 'data')),
            sync_file_name=os.getenv('CLOUD_SYNC_FILE_NAME', DEFAULT_SYNC_FILE_NAME),
            token_encryption_key=os.getenv('CLOUD_SYNC_TOKEN_ENCRYPTION_KEY') or None,
            google_client_id=os.getenv('GOOGLE_OAUTH_CLIENT_ID', ''),
            google_client_secret=os.getenv('GOOGLE_OAUTH_CLIENT_SECRET', ''),
            google_redirect_uri=os.getenv(
                'GOOGLE_OAUTH_REDIRECT_URI',
                f"http://localhost:{server.port}/oauth/callback",
            ),
            http_timeout=float(os.getenv('CLOUD_SYNC_HTTP_TIMEOUT', '30')),
            server=server,
            log_level=log_level,
        )
