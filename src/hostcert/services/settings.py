from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from hostcert.config import const


@dataclass
class AuthoritySettings:
    base_url: str = const.AUTHORITY_API_BASE
    zone_id: str | None = None
    api_token: str | None = None
    timeout: float = const.AUTHORITY_TIMEOUT


@dataclass
class ReconcileSettings:
    poll_attempts: int = const.POLL_ATTEMPTS
    # seconds between failed status fetches
    poll_delay: float = const.POLL_DELAY


@dataclass
class StoreSettings:
    db_path: str = const.DB_PATH


@dataclass
class Settings:
    app_name: str = const.APP_NAME
    port: int = const.PORT
    log_level: str = "INFO"
    authority: AuthoritySettings = field(default_factory=AuthoritySettings)
    reconcile: ReconcileSettings = field(default_factory=ReconcileSettings)
    store: StoreSettings = field(default_factory=StoreSettings)

    def to_dict(self, *, redact: bool = True) -> dict[str, Any]:
        data = asdict(self)
        if redact and data["authority"].get("api_token"):
            data["authority"]["api_token"] = "***"
        return data


# env var -> (section, key, type)
_ENV_MAP: dict[str, tuple[str | None, str, type]] = {
    "CF_API_BASE": ("authority", "base_url", str),
    "CF_ZONE_ID": ("authority", "zone_id", str),
    "CF_API_TOKEN": ("authority", "api_token", str),
    "CF_API_TIMEOUT": ("authority", "timeout", float),
    "HOSTCERT_POLL_ATTEMPTS": ("reconcile", "poll_attempts", int),
    "HOSTCERT_POLL_DELAY": ("reconcile", "poll_delay", float),
    "HOSTCERT_DB_PATH": ("store", "db_path", str),
    "APP_NAME": (None, "app_name", str),
    "PORT": (None, "port", int),
    "HOSTCERT_LOG_LEVEL": (None, "log_level", str),
}


def _parse_env_file(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    data: dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, value = line.split("=", 1)
            data[key.strip()] = value.strip().strip("\"\'")
    return data


def _coerce(name: str, value: Any, typ: type) -> Any:
    try:
        return typ(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for {name}: {value!r}") from exc


def _section_from_dict(settings_cls: type, payload: Any):
    payload = payload if isinstance(payload, dict) else {}
    obj = settings_cls()
    for key, default in asdict(obj).items():
        if payload.get(key) is not None:
            setattr(obj, key, _coerce(f"{settings_cls.__name__}.{key}", payload[key], type(default) if default is not None else str))
    return obj


def _config_path(env: Mapping[str, str]) -> Path | None:
    explicit = env.get("HOSTCERT_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    candidate = Path("hostcert.yaml")
    return candidate if candidate.exists() else None


def load_settings(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    env_file: str | Path | None = ".env",
) -> Settings:
    """
    Build :class:`Settings` from (lowest to highest priority) built-in defaults,
    the YAML config file, a ``.env`` file and the process environment.
    """
    environ: dict[str, str] = {}
    if env_file:
        environ.update(_parse_env_file(Path(env_file)))
    environ.update(os.environ if env is None else env)

    config_path = Path(path) if path else _config_path(environ)
    data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"config file not found: {config_path}")
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config file {config_path} must contain a mapping")

    settings = Settings(
        app_name=str(data.get("app_name") or const.APP_NAME),
        port=_coerce("port", data["port"] if data.get("port") is not None else const.PORT, int),
        log_level=str(data.get("log_level") or "INFO"),
        authority=_section_from_dict(AuthoritySettings, data.get("authority")),
        reconcile=_section_from_dict(ReconcileSettings, data.get("reconcile")),
        store=_section_from_dict(StoreSettings, data.get("store")),
    )

    for name, (section, key, typ) in _ENV_MAP.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        target = getattr(settings, section) if section else settings
        setattr(target, key, _coerce(name, value, typ))

    if settings.reconcile.poll_attempts < 1:
        raise ValueError("reconcile.poll_attempts must be >= 1")
    if settings.reconcile.poll_delay < 0:
        raise ValueError("reconcile.poll_delay must be >= 0")
    return settings


__all__ = [
    "AuthoritySettings",
    "ReconcileSettings",
    "StoreSettings",
    "Settings",
    "load_settings",
]
