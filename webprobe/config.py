"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .dns import DEFAULT_DOH_URL


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_BASE_URL = "http://localhost"
DEFAULT_RETENTION_DAYS = 7


@dataclass(frozen=True)
class ProbeConfig:
    """Settings for individual probes and the per-run worker pool."""

    timeout: int = 10  # seconds per HTTP request (also used for DoH lookups)
    max_workers: int = 4  # concurrent probes per run
    run_timeout: int = 60  # grace seconds before queued probes are abandoned as not started
    user_agent: str = "webprobe/0.1"
    doh_url: str = DEFAULT_DOH_URL

    def __post_init__(self) -> None:
        if self.timeout < 1:
            raise ConfigError(f"Probe timeout must be at least 1 second (got {self.timeout})")
        if self.max_workers < 1:
            raise ConfigError(f"Probe max_workers must be at least 1 (got {self.max_workers})")
        if self.run_timeout < self.timeout:
            raise ConfigError(
                f"Probe run_timeout ({self.run_timeout}s) must not be shorter than timeout ({self.timeout}s)"
            )
        if not self.user_agent:
            raise ConfigError("Probe user_agent cannot be empty")
        if not self.doh_url.startswith(("http://", "https://")):
            raise ConfigError(f"DoH URL must start with http:// or https://, got '{self.doh_url}'")


def _get_default_db_path() -> str:
    """Get the default database path using XDG-compliant directory.

    Returns ~/.local/share/webprobe/results.db.
    """
    home = Path.home()
    return str(home / ".local" / "share" / "webprobe" / "results.db")


DEFAULT_DB_PATH = _get_default_db_path()


@dataclass(frozen=True)
class DatabaseConfig:
    """Configuration for the SQLite result store."""

    path: str = DEFAULT_DB_PATH

    def __post_init__(self) -> None:
        if not self.path:
            raise ConfigError("Database path cannot be empty")


@dataclass(frozen=True)
class SmtpConfig:
    """SMTP settings for emailing failure digests.

    ``from_addr`` is the owning account: digests go there when no recipients
    are configured.
    """

    enabled: bool = False
    host: str = ""
    port: int = 587
    username: str | None = None
    password: str | None = None
    from_addr: str = ""
    use_tls: bool = True

    def __post_init__(self) -> None:
        if self.enabled:
            if not self.host:
                raise ConfigError("SMTP host is required when SMTP is enabled")
            if not self.from_addr:
                raise ConfigError("SMTP from_addr is required when SMTP is enabled")
        if not (1 <= self.port <= 65535):
            raise ConfigError(f"SMTP port must be between 1 and 65535, got {self.port}")


@dataclass(frozen=True)
class WebhookConfig:
    """Configuration for a single digest webhook."""

    url: str
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError("Webhook URL cannot be empty")
        if not self.url.startswith(("http://", "https://")):
            raise ConfigError(f"Webhook URL must start with http:// or https://, got '{self.url}'")


@dataclass(frozen=True)
class NotificationsConfig:
    """Configuration for digest delivery."""

    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    webhooks: list[WebhookConfig] = field(default_factory=list)

    @property
    def owner(self) -> str | None:
        """Default recipient when none are configured."""
        return self.smtp.from_addr or None


@dataclass(frozen=True)
class Config:
    """Main configuration container. Read fresh at the start of each run."""

    base_url: str = DEFAULT_BASE_URL
    targets: list[str] = field(default_factory=lambda: ["/"])
    keyword: str | None = None
    recipients: list[str] = field(default_factory=list)
    retention_days: int = DEFAULT_RETENTION_DAYS
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def __post_init__(self) -> None:
        if not self.base_url.lower().startswith(("http://", "https://")):
            raise ConfigError(f"base_url must start with http:// or https://, got '{self.base_url}'")
        if self.retention_days < 1:
            raise ConfigError(f"retention_days must be at least 1 (got {self.retention_days})")


def _split_list(value: object, name: str) -> list[str]:
    """Accept a YAML list or a comma-separated string; drop empty entries."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = value
    else:
        raise ConfigError(f"'{name}' must be a list or a comma-separated string")

    result = []
    for item in items:
        if item is None:
            continue
        if not isinstance(item, (str, int, float)):
            raise ConfigError(f"Invalid '{name}' entry: {item!r}")
        text = str(item).strip()
        if text:
            result.append(text)
    return result


def _parse_probe_config(data: dict | None) -> ProbeConfig:
    """Parse probe configuration section."""
    if data is None:
        return ProbeConfig()
    if not isinstance(data, dict):
        raise ConfigError("'probe' section must be a dictionary")

    try:
        return ProbeConfig(
            timeout=int(data.get("timeout", 10)),
            max_workers=int(data.get("max_workers", 4)),
            run_timeout=int(data.get("run_timeout", 60)),
            user_agent=str(data.get("user_agent", "webprobe/0.1")),
            doh_url=str(data.get("doh_url", DEFAULT_DOH_URL)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'probe' value: {e}")


def _parse_database_config(data: dict | None) -> DatabaseConfig:
    """Parse database configuration section."""
    if data is None:
        return DatabaseConfig()
    if not isinstance(data, dict):
        raise ConfigError("'database' section must be a dictionary")

    return DatabaseConfig(path=os.path.expanduser(str(data.get("path", DEFAULT_DB_PATH))))


def _parse_smtp_config(data: dict | None) -> SmtpConfig:
    """Parse SMTP configuration section."""
    if data is None:
        return SmtpConfig()
    if not isinstance(data, dict):
        raise ConfigError("'notifications.smtp' section must be a dictionary")

    username = data.get("username")
    password = data.get("password")

    try:
        port = int(data.get("port", 587))
    except (TypeError, ValueError):
        raise ConfigError(f"SMTP port must be an integer, got {data.get('port')!r}")

    return SmtpConfig(
        enabled=bool(data.get("enabled", False)),
        host=str(data.get("host", "")),
        port=port,
        username=str(username) if username is not None else None,
        password=str(password) if password is not None else None,
        from_addr=str(data.get("from_addr", "")),
        use_tls=bool(data.get("use_tls", True)),
    )


def _parse_webhook_config(data: dict, index: int) -> WebhookConfig:
    """Parse a single webhook configuration entry."""
    if not isinstance(data, dict):
        raise ConfigError(f"Webhook entry {index} must be a dictionary")

    url = data.get("url")
    if url is None:
        raise ConfigError(f"Webhook entry {index} is missing 'url' field")

    return WebhookConfig(url=str(url), enabled=bool(data.get("enabled", True)))


def _parse_notifications_config(data: dict | None) -> NotificationsConfig:
    """Parse notifications configuration section."""
    if data is None:
        return NotificationsConfig()
    if not isinstance(data, dict):
        raise ConfigError("'notifications' section must be a dictionary")

    webhooks_data = data.get("webhooks", [])
    if not isinstance(webhooks_data, list):
        raise ConfigError("'notifications.webhooks' must be a list")

    return NotificationsConfig(
        smtp=_parse_smtp_config(data.get("smtp")),
        webhooks=[_parse_webhook_config(webhook_data, i) for i, webhook_data in enumerate(webhooks_data)],
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - WEBPROBE_BASE_URL: Override base_url
    - WEBPROBE_KEYWORD: Override keyword (empty string clears it)
    - WEBPROBE_RETENTION_DAYS: Override retention_days
    - WEBPROBE_DB_PATH: Override database.path
    - WEBPROBE_MAX_WORKERS: Override probe.max_workers
    """
    if config_data.get("database") is None:
        config_data["database"] = {}
    if config_data.get("probe") is None:
        config_data["probe"] = {}

    base_url = os.environ.get("WEBPROBE_BASE_URL")
    if base_url is not None:
        config_data["base_url"] = base_url

    keyword = os.environ.get("WEBPROBE_KEYWORD")
    if keyword is not None:
        config_data["keyword"] = keyword

    try:
        retention = os.environ.get("WEBPROBE_RETENTION_DAYS")
        if retention is not None:
            config_data["retention_days"] = int(retention)

        max_workers = os.environ.get("WEBPROBE_MAX_WORKERS")
        if max_workers is not None and isinstance(config_data["probe"], dict):
            config_data["probe"]["max_workers"] = int(max_workers)
    except ValueError as e:
        raise ConfigError(f"Invalid environment override: {e}")

    db_path = os.environ.get("WEBPROBE_DB_PATH")
    if db_path is not None and isinstance(config_data["database"], dict):
        config_data["database"]["path"] = db_path

    return config_data


def parse_config(data: dict) -> Config:
    """Build a validated Config from already-parsed YAML data.

    Raises:
        ConfigError: If any section is invalid.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    data = _apply_env_overrides(data)

    targets = _split_list(data["targets"], "targets") if "targets" in data else ["/"]

    keyword = data.get("keyword")
    keyword = str(keyword).strip() if keyword is not None else None

    try:
        retention_days = int(data.get("retention_days", DEFAULT_RETENTION_DAYS))
    except (TypeError, ValueError):
        raise ConfigError(f"retention_days must be an integer, got {data.get('retention_days')!r}")

    return Config(
        base_url=str(data.get("base_url", DEFAULT_BASE_URL)).strip(),
        targets=targets,
        keyword=keyword or None,
        recipients=_split_list(data.get("recipients"), "recipients"),
        retention_days=retention_days,
        probe=_parse_probe_config(data.get("probe")),
        database=_parse_database_config(data.get("database")),
        notifications=_parse_notifications_config(data.get("notifications")),
    )


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        raise ConfigError("Configuration file is empty")

    return parse_config(data)


DEFAULT_CONFIG = {
    "base_url": "http://www.example.com",
    "targets": ["/"],
    "keyword": "",
    "recipients": [],
    "retention_days": DEFAULT_RETENTION_DAYS,
    "probe": {
        "timeout": 10,
        "max_workers": 4,
        "run_timeout": 60,
    },
    "database": {"path": DEFAULT_DB_PATH},
}


def write_default_config(config_path: str) -> bool:
    """Write a starter configuration file unless one already exists.

    Returns:
        True if a file was written, False if it already existed.

    Raises:
        ConfigError: If the file cannot be written.
    """
    path = Path(config_path)
    if path.exists():
        return False

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to write configuration file: {e}")
    return True
