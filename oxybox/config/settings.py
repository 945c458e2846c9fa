"""Environment settings."""

import os
from typing import List, Optional


class Settings:
    """Application settings from environment variables."""

    DEFAULT_CONFIG_FILE = "config.yml"
    DEFAULT_DNS_HOSTS = "1.1.1.1,8.8.8.8"
    DEFAULT_MIMIR_ENDPOINT = "http://localhost:9009"

    @staticmethod
    def get(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name
            default: Default value if not set
            required: Whether the variable is required

        Returns:
            str: Environment variable value

        Raises:
            ValueError: If required variable is not set
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value or ""

    @staticmethod
    def config_file() -> str:
        return Settings.get("CONFIG_FILE", Settings.DEFAULT_CONFIG_FILE)

    @staticmethod
    def dns_hosts() -> List[str]:
        """Nameserver IPs from the comma-separated DNS_HOSTS variable."""
        raw = Settings.get("DNS_HOSTS", Settings.DEFAULT_DNS_HOSTS)
        return [host.strip() for host in raw.split(",") if host.strip()]

    @staticmethod
    def mimir_endpoint() -> str:
        return Settings.get("MIMIR_ENDPOINT", Settings.DEFAULT_MIMIR_ENDPOINT)

    @staticmethod
    def log_level() -> str:
        return Settings.get("LOG_LEVEL", "INFO")

    @staticmethod
    def http_timeout() -> float:
        """Per-request timeout of the probe HTTP client, in seconds."""
        raw = Settings.get("PROBE_HTTP_TIMEOUT_SECONDS", "10")
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"PROBE_HTTP_TIMEOUT_SECONDS must be a number, got {raw!r}") from None

    @staticmethod
    def follow_redirects() -> bool:
        return Settings.get("PROBE_FOLLOW_REDIRECTS", "false").lower() in ("1", "true", "yes")
