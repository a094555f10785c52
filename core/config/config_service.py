"""Typed, layered configuration loader with precedence handling."""
from __future__ import annotations

import os
import configparser
from dataclasses import dataclass, fields
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Optional, Tuple, get_type_hints

# --------------------------------------------------------------------------- #
#  Paths & default definitions
# --------------------------------------------------------------------------- #

def _find_project_root() -> Path:
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "core").is_dir():
            return parent
    return here.parent

PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "core" / "config"
DEFAULTS_INI = CONFIG_DIR / "defaults.ini"
MACHINE_INI = CONFIG_DIR / "config.ini"

ENV_PREFIX = "FORMSIGN_"


_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "Storage": {
        "backend": "sqlite",
        "db_path": (PROJECT_ROOT / "databases" / "formsign.db").as_posix(),
    },
    "Signing": {
        "key_file": (PROJECT_ROOT / "certs" / "platform.key.pem").as_posix(),
        "cert_file": (PROJECT_ROOT / "certs" / "platform.cert.pem").as_posix(),
        "key_passphrase": "",
        "reserved_bytes": "9472",
        "certification_signer": "coc_platform",
        "certification_permission": "FORM_FILL",
        "name_prefix": "PDF Forms",
    },
    "Appearance": {
        "label": "Signé par",
        "date_format": "%d/%m/%Y %H:%M",
        "timezone": "Europe/Paris",
    },
    "Logging": {
        "level": "INFO",
        "audit_db": (PROJECT_ROOT / "databases" / "audit.db").as_posix(),
    },
}


# --------------------------------------------------------------------------- #
#  Datamodels
# --------------------------------------------------------------------------- #

@dataclass
class StorageConfig:
    backend: str = "sqlite"
    db_path: Path = Path("databases/formsign.db")


@dataclass
class SigningConfig:
    key_file: Path = Path("certs/platform.key.pem")
    cert_file: Path = Path("certs/platform.cert.pem")
    key_passphrase: str = ""
    reserved_bytes: int = 9472
    certification_signer: str = "coc_platform"
    certification_permission: str = "FORM_FILL"
    name_prefix: str = "PDF Forms"


@dataclass
class AppearanceConfig:
    label: str = "Signé par"
    date_format: str = "%d/%m/%Y %H:%M"
    timezone: str = "Europe/Paris"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    audit_db: Path = Path("databases/audit.db")


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def _cp_to_dict(cp: configparser.ConfigParser) -> Dict[str, Dict[str, Any]]:
    data: Dict[str, Dict[str, Any]] = {}
    for section in cp.sections():
        data[section] = {k: v for k, v in cp.items(section)}
    return data


def _apply(target: Dict[str, Dict[str, Any]], source: Dict[str, Dict[str, Any]],
           layer: str, origin: str,
           sources: Dict[Tuple[str, str], Dict[str, str]]) -> None:
    for section, items in source.items():
        sec = target.setdefault(section, {})
        for key, value in items.items():
            sec[key] = value
            sources[(section, key)] = {"layer": layer, "source": origin}


def _cast(value: Any, typ: type) -> Any:
    if typ is Path:
        return Path(str(value)).expanduser()
    if typ is bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if typ is int:
        return int(value)
    if typ is float:
        return float(value)
    return typ(value)


def _build_dataclass(cls: type, data: Dict[str, Any]) -> Any:
    hints = get_type_hints(cls)
    kwargs = {}
    for field in fields(cls):
        val = data.get(field.name, field.default)
        kwargs[field.name] = _cast(val, hints[field.name])
    return cls(**kwargs)


def _read_ini(path: Path) -> Dict[str, Dict[str, Any]]:
    cp = configparser.ConfigParser(interpolation=None)
    cp.read(path, encoding="utf-8")
    return _cp_to_dict(cp)


def _env_overlays(environ: Optional[Dict[str, str]] = None) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for env_key, value in (os.environ if environ is None else environ).items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        remainder = env_key[len(ENV_PREFIX):]
        parts = remainder.split("__", 1)
        if len(parts) != 2:
            continue
        section, key = parts
        section = section.title()
        key = key.lower()
        result.setdefault(section, {})[key] = value
    return result


def _user_config_path() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA") or (Path.home() / "AppData" / "Roaming")
        return Path(appdata) / "FormSign" / "config.ini"
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "formsign" / "config.ini"


# --------------------------------------------------------------------------- #
#  ConfigService
# --------------------------------------------------------------------------- #


class ConfigService:
    """Facade merging layered configuration with type safety.

    Precedence (lowest first): embedded defaults, ``defaults.ini``,
    environment (``FORMSIGN_<SECTION>__<KEY>``), machine ``config.ini``,
    user config. ``overrides`` passed to the constructor win over everything,
    which is what tests use.
    """

    def __init__(self, *, overrides: Optional[Dict[str, Dict[str, Any]]] = None,
                 environ: Optional[Dict[str, str]] = None,
                 use_files: bool = True) -> None:
        self._lock = RLock()
        self._overrides = overrides or {}
        self._environ = environ
        self._use_files = use_files
        self.reload()

    # ------------------------------------------------------------------ #
    def reload(self) -> None:
        with self._lock:
            merged: Dict[str, Dict[str, Any]] = {}
            sources: Dict[Tuple[str, str], Dict[str, str]] = {}

            # Layer 0: embedded defaults
            _apply(merged, _DEFAULTS, "code", "embedded", sources)

            # Layer 1: defaults.ini
            if self._use_files and DEFAULTS_INI.exists():
                _apply(merged, _read_ini(DEFAULTS_INI), "defaults.ini", str(DEFAULTS_INI), sources)

            # Layer 2: environment variables
            _apply(merged, _env_overlays(self._environ), "env", "os.environ", sources)

            # Layer 3: machine config
            if self._use_files and MACHINE_INI.exists():
                _apply(merged, _read_ini(MACHINE_INI), "machine", str(MACHINE_INI), sources)

            # Layer 4: user overrides
            user_ini = _user_config_path()
            if self._use_files and user_ini.exists():
                _apply(merged, _read_ini(user_ini), "user", str(user_ini), sources)

            # Layer 5: programmatic overrides
            _apply(merged, self._overrides, "override", "constructor", sources)

            self._merged = merged
            self._sources = sources

            self.storage = _build_dataclass(StorageConfig, merged.get("Storage", {}))
            self.signing = _build_dataclass(SigningConfig, merged.get("Signing", {}))
            self.appearance = _build_dataclass(AppearanceConfig, merged.get("Appearance", {}))
            self.logging = _build_dataclass(LoggingConfig, merged.get("Logging", {}))

    # ------------------------------------------------------------------ #
    def get(self, section: str, key: str, *, cast: Callable[[Any], Any] | type = str) -> Any:
        val = self._merged.get(section, {}).get(key)
        if val is None:
            return None
        if isinstance(cast, type):
            return _cast(val, cast)
        return cast(val)

    def meta_source(self, section: str, key: str) -> Dict[str, str] | None:
        return self._sources.get((section, key))


_INSTANCE: Optional[ConfigService] = None
_INSTANCE_LOCK = RLock()


def get_config_service() -> ConfigService:
    """Global singleton, created on first use."""
    global _INSTANCE
    with _INSTANCE_LOCK:
        if _INSTANCE is None:
            _INSTANCE = ConfigService()
        return _INSTANCE
