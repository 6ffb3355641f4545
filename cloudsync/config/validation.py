"""
Configuration validation for the cloud sync engine.
"""

import re
from typing import List

from .settings import CloudSyncSettings


class ConfigValidator:
    """Validates configuration settings."""

    @staticmethod
    def validate_settings(settings: CloudSyncSettings) -> List[str]:
        """Validate the full configuration. Returns a list of problems."""
        errors = []

        errors.extend(ConfigValidator._validate_google(settings))
        errors.extend(ConfigValidator._validate_server(settings))

        if not settings.sync_file_name.strip():
            errors.append("Sync file name must not be empty")
        elif '/' in settings.sync_file_name:
            errors.append(f"Sync file name cannot contain '/': {settings.sync_file_name}")

        if settings.http_timeout <= 0:
            errors.append("HTTP timeout must be positive")

        return errors

    @staticmethod
    def _validate_google(settings: CloudSyncSettings) -> List[str]:
        errors = []

        if not settings.google_client_id:
            errors.append("GOOGLE_OAUTH_CLIENT_ID is not set; Google Drive sign-in is unavailable")

        if not ConfigValidator._is_valid_url(settings.google_redirect_uri):
            errors.append(f"Invalid OAuth redirect URI: {settings.google_redirect_uri}")

        return errors

    @staticmethod
    def _validate_server(settings: CloudSyncSettings) -> List[str]:
        errors = []

        if not (1 <= settings.server.port <= 65535):
            errors.append(f"Server port {settings.server.port} is not in valid range (1-65535)")

        return errors

    @staticmethod
    def _is_valid_url(url: str) -> bool:
        url_pattern = r'^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$'
        return bool(re.match(url_pattern, url))
