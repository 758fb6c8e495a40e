"""Configuration system for seat-monitor."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


@dataclass
class BackendConfig:
    """Monitoring backend address."""

    host: str = "127.0.0.1"
    port: int = 8000
    ws_path: str = "/ws"
    request_timeout: float = 10.0  # Seconds per REST request

    @property
    def ws_url(self) -> str:
        """URL of the persistent stream endpoint."""
        return f"ws://{self.host}:{self.port}{self.ws_path}"

    @property
    def http_url(self) -> str:
        """Base URL for REST endpoints."""
        return f"http://{self.host}:{self.port}"


@dataclass
class ReconnectConfig:
    """Reconnection backoff configuration.

    Backoff schedule: 1s → 2s → 4s → 8s → 16s → 30s (capped), then the
    session gives up after max_attempts consecutive failures.
    """

    initial_delay: float = 1.0  # Delay before the first retry (seconds)
    max_delay: float = 30.0  # Cap for the retry delay (seconds)
    multiplier: float = 2.0  # Exponential backoff multiplier
    max_attempts: int = 10  # Consecutive failures before giving up


@dataclass
class HeartbeatConfig:
    """Liveness probe configuration."""

    interval: float = 30.0  # Seconds between liveness checks
    timeout: float = 60.0  # Silence (seconds) before a probe is sent


@dataclass
class NotificationsConfig:
    """Notification log and grouping configuration."""

    log_capacity: int = 50  # Updates kept per event (oldest evicted first)
    group_window: float = 30.0  # Seconds within which same-kind updates merge


@dataclass
class SystemConfig:
    """Client process configuration."""

    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    render_debounce: float = 0.1  # Seconds to coalesce bursts of updates
    status_clear_seconds: float = 3.0  # Success messages auto-hide after this
    connected_color: str = "#50fa7b"  # Dracula green
    connecting_color: str = "#f1fa8c"  # Dracula yellow
    disconnected_color: str = "#ff5555"  # Dracula red
    added_color: str = "#50fa7b"
    removed_color: str = "#ff5555"


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "seat-monitor"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def data_dir(self) -> Path:
        """Data directory."""
        return Path.home() / ".local" / "share" / "seat-monitor"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and other expendable persistent state."""
        return Path.home() / ".local" / "state" / "seat-monitor"

    @property
    def db_path(self) -> Path:
        """Database holding the monitored event collection."""
        return self.data_dir / "data.db"

    @property
    def log_path(self) -> Path:
        """Client log path."""
        return self.state_dir / "client.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        sections = [
            "backend",
            "reconnect",
            "heartbeat",
            "notifications",
            "system",
            "tui",
        ]
        for name in sections:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions - no hardcoded values here.
        This ensures Config() and Config.load() use identical defaults.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            backend=_load_backend_config(data.get("backend", {})),
            reconnect=_load_reconnect_config(data.get("reconnect", {})),
            heartbeat=_load_heartbeat_config(data.get("heartbeat", {})),
            notifications=_load_notifications_config(data.get("notifications", {})),
            system=_load_system_config(data.get("system", {})),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _load_backend_config(data: dict) -> BackendConfig:
    """Load backend config from TOML data."""
    d = BackendConfig()
    port = data.get("port", d.port)
    if not 0 < port < 65536:
        raise ValueError(f"port must be between 1 and 65535, got {port}")
    ws_path = data.get("ws_path", d.ws_path)
    if not ws_path.startswith("/"):
        raise ValueError(f"ws_path must start with '/', got {ws_path!r}")
    request_timeout = data.get("request_timeout", d.request_timeout)
    if request_timeout <= 0:
        raise ValueError(f"request_timeout must be > 0, got {request_timeout}")
    return BackendConfig(
        host=data.get("host", d.host),
        port=port,
        ws_path=ws_path,
        request_timeout=request_timeout,
    )


def _load_reconnect_config(data: dict) -> ReconnectConfig:
    """Load reconnect config from TOML data, using dataclass defaults for missing fields."""
    defaults = ReconnectConfig()

    initial_delay = data.get("initial_delay", defaults.initial_delay)
    max_delay = data.get("max_delay", defaults.max_delay)
    multiplier = data.get("multiplier", defaults.multiplier)
    max_attempts = data.get("max_attempts", defaults.max_attempts)

    if initial_delay <= 0:
        raise ValueError(f"initial_delay must be > 0, got {initial_delay}")
    if max_delay < initial_delay:
        raise ValueError(f"max_delay must be >= initial_delay, got {max_delay} < {initial_delay}")
    if multiplier < 1:
        raise ValueError(f"multiplier must be >= 1, got {multiplier}")
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    return ReconnectConfig(
        initial_delay=initial_delay,
        max_delay=max_delay,
        multiplier=multiplier,
        max_attempts=max_attempts,
    )


def _load_heartbeat_config(data: dict) -> HeartbeatConfig:
    """Load heartbeat config from TOML data."""
    d = HeartbeatConfig()
    interval = data.get("interval", d.interval)
    timeout = data.get("timeout", d.timeout)
    if interval <= 0:
        raise ValueError(f"heartbeat interval must be > 0, got {interval}")
    if timeout <= 0:
        raise ValueError(f"heartbeat timeout must be > 0, got {timeout}")
    return HeartbeatConfig(interval=interval, timeout=timeout)


def _load_notifications_config(data: dict) -> NotificationsConfig:
    """Load notifications config from TOML data."""
    d = NotificationsConfig()
    log_capacity = data.get("log_capacity", d.log_capacity)
    group_window = data.get("group_window", d.group_window)
    if log_capacity < 1:
        raise ValueError(f"log_capacity must be >= 1, got {log_capacity}")
    if group_window < 0:
        raise ValueError(f"group_window must be >= 0, got {group_window}")
    return NotificationsConfig(log_capacity=log_capacity, group_window=group_window)


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config from TOML data."""
    d = SystemConfig()
    return SystemConfig(
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    d = TUIConfig()
    render_debounce = data.get("render_debounce", d.render_debounce)
    if render_debounce < 0:
        raise ValueError(f"render_debounce must be >= 0, got {render_debounce}")
    return TUIConfig(
        render_debounce=render_debounce,
        status_clear_seconds=data.get("status_clear_seconds", d.status_clear_seconds),
        connected_color=data.get("connected_color", d.connected_color),
        connecting_color=data.get("connecting_color", d.connecting_color),
        disconnected_color=data.get("disconnected_color", d.disconnected_color),
        added_color=data.get("added_color", d.added_color),
        removed_color=data.get("removed_color", d.removed_color),
    )
