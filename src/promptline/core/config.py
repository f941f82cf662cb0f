"""Configuration loader and runtime settings for promptline."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path

import yaml

from promptline.core.fileutil import atomic_write
from promptline.core.models import ProviderConfig, Service

log = logging.getLogger(__name__)

KEYRING_SERVICE = "promptline"

DEFAULTS: dict = {
    "service": "ollama",
    "model": None,  # defaults to services.<service>.model
    "stream": True,
    "timeout": 120.0,
    "total_timeout": 600.0,
    "log_dir": None,
    "stream_threshold": 80,
    "confirm_rewrite": True,
    "templates_dir": None,  # defaults to <home>/templates
    # api_key: literal key, "keyring", or null (environment fallback)
    "services": {
        "openai": {
            "base_url": "https://api.openai.com",
            "api_key": "keyring",
            "model": "gpt-4o-mini",
        },
        "ollama": {
            "base_url": "http://localhost:11434",
            "model": "llama3.1:8b",
        },
        "anthropic": {
            "base_url": "https://api.anthropic.com",
            "api_key": "keyring",
            "model": "claude-sonnet-4-20250514",
            "max_tokens": 4096,
        },
    },
}

_ENV_KEYS = {
    Service.OPENAI: "OPENAI_API_KEY",
    Service.ANTHROPIC: "ANTHROPIC_API_KEY",
}


def resolve_home() -> Path:
    """Resolve PROMPTLINE_HOME: env var > default ~/.promptline."""
    env_home = os.environ.get("PROMPTLINE_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.promptline").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
            if not isinstance(user_config, dict):
                log.warning("Config at %s is not a mapping, using defaults", path)
                user_config = {}
        except (OSError, yaml.YAMLError):
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)

    return _deep_merge(DEFAULTS, user_config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _keyring_user(service: Service) -> str:
    return f"{service.value}_api_key"


def get_keyring_key(service: Service) -> str | None:
    """Retrieve an API key from the system keyring."""
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, _keyring_user(service))
    except Exception:
        log.debug("Keyring lookup failed for %s", service.value, exc_info=True)
        return None


def store_keyring_key(service: Service, api_key: str) -> None:
    """Store an API key in the system keyring."""
    import keyring

    keyring.set_password(KEYRING_SERVICE, _keyring_user(service), api_key)


class Settings:
    """Process-wide configuration context.

    Holds the merged config dict and exposes explicit setters. Requests
    call provider_config() once and work from that frozen snapshot, so a
    change made mid-flight only affects later requests.
    """

    def __init__(self, config: dict | None = None, path: Path | None = None) -> None:
        self._config = _deep_merge(DEFAULTS, config or {})
        self._path = path
        self._session_keys: dict[Service, str] = {}

    @classmethod
    def load(cls, home: Path | None = None) -> Settings:
        """Load settings from <home>/config.yaml."""
        path = config_path(home)
        return cls(load_config(path), path=path)

    # --- read accessors ---

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def service(self) -> Service:
        return Service.parse(self._config.get("service", DEFAULTS["service"]))

    @property
    def model(self) -> str:
        model = self._config.get("model")
        if model:
            return str(model)
        return str(self._service_section(self.service).get("model", ""))

    @property
    def log_dir(self) -> Path | None:
        value = self._config.get("log_dir")
        return Path(value).expanduser() if value else None

    @property
    def stream_threshold(self) -> int:
        return int(self._config.get("stream_threshold", DEFAULTS["stream_threshold"]))

    @property
    def confirm_rewrite(self) -> bool:
        return bool(self._config.get("confirm_rewrite", True))

    def templates_dir(self, home: Path | None = None) -> Path:
        value = self._config.get("templates_dir")
        if value:
            return Path(value).expanduser()
        base = self._path.parent if self._path else (home or resolve_home())
        return base / "templates"

    def as_dict(self) -> dict:
        """Return a copy of the config with API keys masked."""
        data = _deep_merge(self._config, {})
        for section in data.get("services", {}).values():
            key = section.get("api_key")
            if key and key != "keyring":
                section["api_key"] = "***"
        return data

    def _service_section(self, service: Service) -> dict:
        return self._config.get("services", {}).get(service.value, {})

    def api_key(self, service: Service) -> str | None:
        """Resolve the API key for a service.

        Order: key set this session, literal config value, keyring (when the
        config says "keyring"), then the vendor's environment variable.
        """
        if service in self._session_keys:
            return self._session_keys[service]
        setting = self._service_section(service).get("api_key")
        if setting and setting != "keyring":
            return str(setting)
        if setting == "keyring":
            key = get_keyring_key(service)
            if key:
                return key
        env_var = _ENV_KEYS.get(service)
        if env_var:
            return os.environ.get(env_var) or None
        return None

    def provider_config(self, service: Service | str | None = None) -> ProviderConfig:
        """Build the frozen snapshot used by a single request."""
        svc = Service.parse(service) if service else self.service
        section = self._service_section(svc)
        if svc == self.service:
            model = self.model
        else:
            model = str(section.get("model", ""))
        return ProviderConfig(
            service=svc,
            model=model,
            base_url=str(section.get("base_url", "")).rstrip("/"),
            api_key=self.api_key(svc),
            timeout=float(section.get("timeout", self._config.get("timeout", 120.0))),
            total_timeout=float(self._config.get("total_timeout", 600.0)),
            max_tokens=int(section.get("max_tokens", 4096)),
            stream=bool(self._config.get("stream", True)),
        )

    # --- setters ---

    def set_service(self, service: Service | str) -> None:
        """Switch the active service; the model falls back to its default."""
        svc = Service.parse(service)
        self._config["service"] = svc.value
        self._config["model"] = None
        log.info("Active service set to %s", svc.value)

    def set_model(self, model: str) -> None:
        if not model.strip():
            raise ValueError("Model name must not be empty")
        self._config["model"] = model.strip()
        log.info("Active model set to %s", model)

    def set_api_key(self, service: Service | str, api_key: str, persist: bool = False) -> None:
        """Set a key for this session, optionally storing it in the keyring."""
        svc = Service.parse(service)
        self._session_keys[svc] = api_key
        if persist:
            store_keyring_key(svc, api_key)
            self._config.setdefault("services", {}).setdefault(svc.value, {})["api_key"] = "keyring"
        log.info("API key updated for %s", svc.value)

    def set_log_dir(self, path: Path | str | None) -> None:
        self._config["log_dir"] = str(path) if path else None

    def set_stream_threshold(self, threshold: int) -> None:
        if threshold < 0:
            raise ValueError("Stream threshold must be >= 0")
        self._config["stream_threshold"] = threshold

    def set_confirm_rewrite(self, enabled: bool) -> None:
        self._config["confirm_rewrite"] = bool(enabled)

    def set_stream(self, enabled: bool) -> None:
        self._config["stream"] = bool(enabled)

    def save(self, path: Path | None = None) -> Path:
        """Write the settings back to config.yaml (never session keys)."""
        target = path or self._path or config_path()
        atomic_write(target, yaml.safe_dump(self._config, sort_keys=False))
        self._path = target
        return target
