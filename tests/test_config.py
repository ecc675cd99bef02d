"""Tests for the configuration module."""

from pathlib import Path

import pytest
import yaml

from webprobe.config import (
    DEFAULT_DB_PATH,
    Config,
    ConfigError,
    DatabaseConfig,
    ProbeConfig,
    SmtpConfig,
    WebhookConfig,
    _split_list,
    load_config,
    parse_config,
    write_default_config,
)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for config files."""
    return tmp_path


@pytest.fixture
def valid_config_content() -> str:
    """Return a valid configuration YAML content."""
    return """base_url: https://www.example.com/
targets:
  - /
  - /about
  - https://status.example.org/health
keyword: Welcome
recipients:
  - ops@example.com
  - dev@example.com
retention_days: 14

probe:
  timeout: 5
  max_workers: 8
  run_timeout: 30

database:
  path: ./data/results.db

notifications:
  smtp:
    enabled: true
    host: smtp.example.com
    port: 465
    username: probe
    password: secret
    from_addr: owner@example.com
    use_tls: false
  webhooks:
    - url: https://hooks.example.com/webprobe
"""


class TestProbeConfig:
    """Tests for ProbeConfig dataclass."""

    def test_defaults(self) -> None:
        """ProbeConfig has sensible defaults."""
        probe = ProbeConfig()
        assert probe.timeout == 10
        assert probe.max_workers == 4
        assert probe.run_timeout == 60

    def test_rejects_timeout_less_than_1(self) -> None:
        """Timeout below 1 second is rejected."""
        with pytest.raises(ConfigError, match="timeout must be at least 1"):
            ProbeConfig(timeout=0)

    def test_rejects_zero_workers(self) -> None:
        """At least one worker is required."""
        with pytest.raises(ConfigError, match="max_workers"):
            ProbeConfig(max_workers=0)

    def test_rejects_run_timeout_shorter_than_timeout(self) -> None:
        """The stall grace cannot be shorter than a single probe timeout."""
        with pytest.raises(ConfigError, match="run_timeout"):
            ProbeConfig(timeout=30, run_timeout=10)

    def test_rejects_non_http_doh_url(self) -> None:
        """The DoH endpoint must be an http(s) URL."""
        with pytest.raises(ConfigError, match="DoH URL"):
            ProbeConfig(doh_url="dns.google/resolve")


class TestSmtpConfig:
    """Tests for SmtpConfig dataclass."""

    def test_disabled_by_default(self) -> None:
        """SMTP is disabled and needs no host by default."""
        assert SmtpConfig().enabled is False

    def test_enabled_requires_host(self) -> None:
        """Enabled SMTP without a host is rejected."""
        with pytest.raises(ConfigError, match="SMTP host is required"):
            SmtpConfig(enabled=True, from_addr="owner@example.com")

    def test_enabled_requires_from_addr(self) -> None:
        """Enabled SMTP without a sender is rejected."""
        with pytest.raises(ConfigError, match="from_addr is required"):
            SmtpConfig(enabled=True, host="smtp.example.com")

    def test_rejects_invalid_port(self) -> None:
        """Ports outside 1-65535 are rejected."""
        with pytest.raises(ConfigError, match="SMTP port"):
            SmtpConfig(port=70000)


class TestWebhookConfig:
    """Tests for WebhookConfig dataclass."""

    def test_rejects_empty_url(self) -> None:
        """Empty webhook URL is rejected."""
        with pytest.raises(ConfigError, match="cannot be empty"):
            WebhookConfig(url="")

    def test_rejects_url_without_protocol(self) -> None:
        """Webhook URL must use http or https."""
        with pytest.raises(ConfigError, match="must start with"):
            WebhookConfig(url="hooks.example.com")


class TestConfig:
    """Tests for the main Config dataclass."""

    def test_defaults(self) -> None:
        """Config defaults to probing the root path of localhost."""
        config = Config()
        assert config.base_url == "http://localhost"
        assert config.targets == ["/"]
        assert config.keyword is None
        assert config.recipients == []
        assert config.retention_days == 7
        assert config.database == DatabaseConfig()

    def test_rejects_base_url_without_protocol(self) -> None:
        """base_url must be an http(s) URL."""
        with pytest.raises(ConfigError, match="base_url"):
            Config(base_url="example.com")

    def test_rejects_retention_days_less_than_1(self) -> None:
        """Retention must be at least one day."""
        with pytest.raises(ConfigError, match="retention_days"):
            Config(retention_days=0)

    def test_accepts_empty_targets(self) -> None:
        """An empty target list is allowed and yields an empty run."""
        assert Config(targets=[]).targets == []

    def test_owner_is_smtp_sender(self, valid_config_content: str) -> None:
        """The owner address comes from the SMTP sender."""
        config = parse_config(yaml.safe_load(valid_config_content))
        assert config.notifications.owner == "owner@example.com"
        assert Config().notifications.owner is None


class TestSplitList:
    """Tests for _split_list function."""

    def test_none(self) -> None:
        """None gives an empty list."""
        assert _split_list(None, "targets") == []

    def test_comma_separated_string(self) -> None:
        """Comma-separated strings are split and trimmed."""
        assert _split_list(" /, /about ,,https://x.example ", "targets") == ["/", "/about", "https://x.example"]

    def test_list_entries_trimmed(self) -> None:
        """List entries are trimmed and blanks dropped."""
        assert _split_list([" a@example.com", "", None, "b@example.com "], "recipients") == [
            "a@example.com",
            "b@example.com",
        ]

    def test_rejects_other_types(self) -> None:
        """Mappings are rejected."""
        with pytest.raises(ConfigError, match="'targets' must be a list"):
            _split_list({"a": 1}, "targets")

    def test_rejects_nested_entries(self) -> None:
        """Nested structures inside the list are rejected."""
        with pytest.raises(ConfigError, match="Invalid 'recipients' entry"):
            _split_list([["a@example.com"]], "recipients")


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_valid_config(self, config_dir: Path, valid_config_content: str) -> None:
        """Valid configuration file is loaded correctly."""
        config_file = config_dir / "config.yaml"
        config_file.write_text(valid_config_content)

        config = load_config(str(config_file))

        assert config.base_url == "https://www.example.com/"
        assert config.targets == ["/", "/about", "https://status.example.org/health"]
        assert config.keyword == "Welcome"
        assert config.recipients == ["ops@example.com", "dev@example.com"]
        assert config.retention_days == 14
        assert config.probe.timeout == 5
        assert config.probe.max_workers == 8
        assert config.probe.run_timeout == 30
        assert config.database.path == "./data/results.db"
        assert config.notifications.smtp.enabled is True
        assert config.notifications.smtp.port == 465
        assert config.notifications.smtp.use_tls is False
        assert config.notifications.webhooks[0].url == "https://hooks.example.com/webprobe"

    def test_minimal_config_uses_defaults(self, config_dir: Path) -> None:
        """Omitted keys fall back to defaults."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\n")

        config = load_config(str(config_file))

        assert config.targets == ["/"]
        assert config.retention_days == 7
        assert config.database.path == DEFAULT_DB_PATH
        assert config.notifications.smtp.enabled is False
        assert config.notifications.webhooks == []

    def test_comma_separated_values(self, config_dir: Path) -> None:
        """Targets and recipients may be comma-separated strings."""
        config_file = config_dir / "config.yaml"
        config_file.write_text(
            "base_url: https://example.com\n"
            "targets: '/, /pricing'\n"
            "recipients: 'a@example.com, b@example.com'\n"
        )

        config = load_config(str(config_file))

        assert config.targets == ["/", "/pricing"]
        assert config.recipients == ["a@example.com", "b@example.com"]

    def test_explicit_empty_targets(self, config_dir: Path) -> None:
        """An explicitly empty target list stays empty."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\ntargets: []\n")

        assert load_config(str(config_file)).targets == []

    def test_blank_keyword_is_none(self, config_dir: Path) -> None:
        """A blank keyword disables keyword matching."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\nkeyword: '   '\n")

        assert load_config(str(config_file)).keyword is None

    def test_database_path_expands_user(self, config_dir: Path) -> None:
        """A leading ~ in the database path is expanded."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("database:\n  path: ~/probe.db\n")

        assert not load_config(str(config_file)).database.path.startswith("~")

    def test_missing_file(self, config_dir: Path) -> None:
        """Missing configuration file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(config_dir / "missing.yaml"))

    def test_empty_file(self, config_dir: Path) -> None:
        """Empty configuration file raises ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("")

        with pytest.raises(ConfigError, match="empty"):
            load_config(str(config_file))

    def test_invalid_yaml(self, config_dir: Path) -> None:
        """Malformed YAML raises ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("targets: [unclosed\n")

        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            load_config(str(config_file))

    def test_non_dict_root(self, config_dir: Path) -> None:
        """A YAML list at the root is rejected."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("- /\n- /about\n")

        with pytest.raises(ConfigError, match="must be a YAML dictionary"):
            load_config(str(config_file))

    def test_invalid_retention(self, config_dir: Path) -> None:
        """Non-integer retention raises ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("retention_days: weekly\n")

        with pytest.raises(ConfigError, match="retention_days must be an integer"):
            load_config(str(config_file))

    def test_invalid_smtp_port(self, config_dir: Path) -> None:
        """Non-integer SMTP port raises ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("notifications:\n  smtp:\n    port: submission\n")

        with pytest.raises(ConfigError, match="SMTP port must be an integer"):
            load_config(str(config_file))

    def test_webhook_missing_url(self, config_dir: Path) -> None:
        """Webhook entries require a URL."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("notifications:\n  webhooks:\n    - enabled: true\n")

        with pytest.raises(ConfigError, match="missing 'url'"):
            load_config(str(config_file))


class TestEnvironmentVariableOverrides:
    """Tests for environment variable override functionality."""

    def test_overrides_base_url(self, config_dir: Path, monkeypatch) -> None:
        """WEBPROBE_BASE_URL env var overrides base_url."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\n")

        monkeypatch.setenv("WEBPROBE_BASE_URL", "https://staging.example.com")
        config = load_config(str(config_file))

        assert config.base_url == "https://staging.example.com"

    def test_overrides_keyword(self, config_dir: Path, monkeypatch) -> None:
        """WEBPROBE_KEYWORD env var overrides keyword; empty clears it."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("keyword: Welcome\n")

        monkeypatch.setenv("WEBPROBE_KEYWORD", "Pricing")
        assert load_config(str(config_file)).keyword == "Pricing"

        monkeypatch.setenv("WEBPROBE_KEYWORD", "")
        assert load_config(str(config_file)).keyword is None

    def test_overrides_retention_days(self, config_dir: Path, monkeypatch) -> None:
        """WEBPROBE_RETENTION_DAYS env var overrides retention."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("retention_days: 7\n")

        monkeypatch.setenv("WEBPROBE_RETENTION_DAYS", "30")

        assert load_config(str(config_file)).retention_days == 30

    def test_overrides_db_path(self, config_dir: Path, monkeypatch) -> None:
        """WEBPROBE_DB_PATH env var overrides the database path."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\n")

        monkeypatch.setenv("WEBPROBE_DB_PATH", "/tmp/override.db")

        assert load_config(str(config_file)).database.path == "/tmp/override.db"

    def test_overrides_max_workers(self, config_dir: Path, monkeypatch) -> None:
        """WEBPROBE_MAX_WORKERS env var overrides the worker count."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("probe:\n  max_workers: 2\n")

        monkeypatch.setenv("WEBPROBE_MAX_WORKERS", "12")

        assert load_config(str(config_file)).probe.max_workers == 12

    def test_invalid_integer_override(self, config_dir: Path, monkeypatch) -> None:
        """Non-integer overrides raise ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://example.com\n")

        monkeypatch.setenv("WEBPROBE_RETENTION_DAYS", "forever")

        with pytest.raises(ConfigError, match="Invalid environment override"):
            load_config(str(config_file))


class TestWriteDefaultConfig:
    """Tests for write_default_config function."""

    def test_writes_loadable_file(self, config_dir: Path) -> None:
        """The starter file is written and loads cleanly."""
        config_file = config_dir / "sub" / "config.yaml"

        assert write_default_config(str(config_file)) is True

        config = load_config(str(config_file))
        assert config.base_url == "http://www.example.com"
        assert config.targets == ["/"]
        assert config.keyword is None

    def test_existing_file_untouched(self, config_dir: Path) -> None:
        """An existing file is never overwritten."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("base_url: https://mine.example.com\n")

        assert write_default_config(str(config_file)) is False
        assert config_file.read_text() == "base_url: https://mine.example.com\n"
