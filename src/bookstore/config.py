from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import platformdirs
import tomllib
import tomli_w
from pymongo.errors import ConfigurationError
from pymongo.uri_parser import parse_uri

APP_NAME = "bookstorectl"
URI_ENV_VAR = "MONGO_URI"
DEFAULT_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE = "plp_bookstore"
DEFAULT_COLLECTION = "books"
DEFAULT_PAGE_SIZE = 5
DEFAULT_TIMEOUT_MS = 5000

_URI_SCHEMES = ("mongodb://", "mongodb+srv://")


class ConfigError(ValueError):
    """Raised when config values are invalid."""


@dataclass(slots=True)
class AppConfig:
    mongo_uri: str | None = None
    database: str = DEFAULT_DATABASE
    collection: str = DEFAULT_COLLECTION
    page_size: int = DEFAULT_PAGE_SIZE
    timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass(slots=True)
class ConnectionSettings:
    uri: str
    database: str
    collection: str
    timeout_ms: int
    uri_source: str


def config_dir() -> Path:
    return Path(platformdirs.user_config_dir(APP_NAME))


def config_path() -> Path:
    return config_dir() / "config.toml"


def _srv_host(uri: str) -> str:
    rest = uri[len("mongodb+srv://") :]
    host = rest.rpartition("@")[2].split("/", 1)[0].split("?", 1)[0]
    return host


def validate_mongo_uri(uri: str) -> str:
    normalized = uri.strip()
    if not normalized.startswith(_URI_SCHEMES):
        raise ConfigError(f"Invalid MongoDB URI: {uri!r}")

    if normalized.startswith("mongodb+srv://"):
        # SRV records are resolved at connect time; only the shape is checked here.
        host = _srv_host(normalized)
        if not host or ":" in host or "," in host:
            raise ConfigError(f"Invalid MongoDB URI: {uri!r} (mongodb+srv needs exactly one host and no port)")
        return normalized

    try:
        parse_uri(normalized)
    except (ConfigurationError, ValueError) as exc:
        raise ConfigError(f"Invalid MongoDB URI: {uri!r} ({exc})") from exc
    return normalized


def validate_name(value: str, *, key: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ConfigError(f"Config key '{key}' must not be empty.")
    if "$" in normalized or " " in normalized:
        raise ConfigError(f"Config key '{key}' contains invalid characters: {value!r}")
    return normalized


def validate_positive_int(value: Any, *, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"Config key '{key}' must be a positive integer.")
    return value


def mask_uri(uri: str) -> str:
    scheme, sep, rest = uri.partition("://")
    if not sep or "@" not in rest:
        return uri
    credentials, _, host = rest.rpartition("@")
    if ":" not in credentials:
        return uri
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def _read_raw_config() -> dict[str, Any]:
    path = config_path()
    if not path.exists():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Could not parse config file at {path}: {exc}") from exc


def load_config() -> AppConfig:
    raw = _read_raw_config()
    mongo_uri = raw.get("mongo_uri")
    database = raw.get("database", DEFAULT_DATABASE)
    collection = raw.get("collection", DEFAULT_COLLECTION)

    if mongo_uri is not None:
        if not isinstance(mongo_uri, str):
            raise ConfigError("Config key 'mongo_uri' must be a string.")
        mongo_uri = validate_mongo_uri(mongo_uri)

    if not isinstance(database, str):
        raise ConfigError("Config key 'database' must be a string.")
    if not isinstance(collection, str):
        raise ConfigError("Config key 'collection' must be a string.")

    return AppConfig(
        mongo_uri=mongo_uri,
        database=validate_name(database, key="database"),
        collection=validate_name(collection, key="collection"),
        page_size=validate_positive_int(raw.get("page_size", DEFAULT_PAGE_SIZE), key="page_size"),
        timeout_ms=validate_positive_int(raw.get("timeout_ms", DEFAULT_TIMEOUT_MS), key="timeout_ms"),
    )


def save_config(config: AppConfig) -> None:
    config_dir().mkdir(parents=True, exist_ok=True)
    payload: dict[str, Any] = {
        "database": config.database,
        "collection": config.collection,
        "page_size": config.page_size,
        "timeout_ms": config.timeout_ms,
    }
    if config.mongo_uri is not None:
        payload["mongo_uri"] = config.mongo_uri
    config_path().write_text(tomli_w.dumps(payload), encoding="utf-8")


def set_mongo_uri(uri: str) -> AppConfig:
    cfg = load_config()
    cfg.mongo_uri = validate_mongo_uri(uri)
    save_config(cfg)
    return cfg


def set_database(name: str) -> AppConfig:
    cfg = load_config()
    cfg.database = validate_name(name, key="database")
    save_config(cfg)
    return cfg


def set_collection(name: str) -> AppConfig:
    cfg = load_config()
    cfg.collection = validate_name(name, key="collection")
    save_config(cfg)
    return cfg


def set_page_size(size: int) -> AppConfig:
    cfg = load_config()
    cfg.page_size = validate_positive_int(size, key="page_size")
    save_config(cfg)
    return cfg


def resolve_mongo_uri(uri_override: str | None, cfg: AppConfig) -> tuple[str, str]:
    """Return the URI to connect with and where it came from.

    Precedence: explicit override, then the MONGO_URI environment variable,
    then the config file, then the local default.
    """
    if uri_override:
        return validate_mongo_uri(uri_override), "option"
    env_uri = os.getenv(URI_ENV_VAR)
    if env_uri and env_uri.strip():
        return validate_mongo_uri(env_uri), "env"
    if cfg.mongo_uri:
        return cfg.mongo_uri, "config"
    return DEFAULT_URI, "default"


def resolve_connection(
    cfg: AppConfig,
    *,
    uri_override: str | None = None,
    database_override: str | None = None,
    collection_override: str | None = None,
) -> ConnectionSettings:
    uri, source = resolve_mongo_uri(uri_override, cfg)
    database = validate_name(database_override, key="database") if database_override else cfg.database
    collection = (
        validate_name(collection_override, key="collection") if collection_override else cfg.collection
    )
    return ConnectionSettings(
        uri=uri,
        database=database,
        collection=collection,
        timeout_ms=cfg.timeout_ms,
        uri_source=source,
    )
