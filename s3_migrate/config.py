from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .utils import read_yaml

DEFAULT_CONFIG = "config.yaml"


class FailurePolicy(str, Enum):
    """What a phase does when a single object fails."""
    CONTINUE = "continue"   # log, skip the item, keep going
    ABORT = "abort"         # stop the phase at the first failure


class EmptyObjectPolicy(str, Enum):
    """
    Handling of zero-size objects.

    SKIP treats them as directory markers / placeholders: they are never staged
    and therefore never reach the destination. KEEP stages them as empty files
    (keys ending in "/" are still treated as markers) and uploads them.
    """
    SKIP = "skip"
    KEEP = "keep"


@dataclass(frozen=True)
class EndpointConfig:
    bucket: str
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None
    local_download_path: Optional[str] = None


@dataclass(frozen=True)
class MigrationOptions:
    download_policy: FailurePolicy = FailurePolicy.CONTINUE
    upload_policy: FailurePolicy = FailurePolicy.ABORT
    empty_objects: EmptyObjectPolicy = EmptyObjectPolicy.SKIP
    keep_staging_on_failure: bool = False
    page_size: Optional[int] = None
    max_workers: int = 1
    progress: bool = False
    retries_max_attempts: int = 8
    retries_mode: str = "standard"
    connect_timeout: int = 10
    read_timeout: int = 60


@dataclass(frozen=True)
class MigrationConfig:
    source: EndpointConfig
    destination: EndpointConfig
    options: MigrationOptions = field(default_factory=MigrationOptions)

    @property
    def staging_path(self) -> Path:
        return Path(self.source.local_download_path)


# YAML key -> dataclass field
_ENDPOINT_KEYS = {
    "accessKey": "access_key",
    "secretKey": "secret_key",
    "endpoint": "endpoint",
    "bucket": "bucket",
    "region": "region",
    "profile": "profile",
}


def _endpoint_from_dict(name: str, raw: Any, source_side: bool) -> EndpointConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"missing or invalid '{name}' section")
    values = {field_name: raw.get(key) for key, field_name in _ENDPOINT_KEYS.items()}
    if not values["bucket"]:
        raise ConfigError(f"'{name}.bucket' is required")
    if source_side:
        path = raw.get("localDownloadPath")
        if not path:
            raise ConfigError(f"'{name}.localDownloadPath' is required")
        values["local_download_path"] = str(path)
    return EndpointConfig(**values)


_INT_OPTIONS = ("max_workers", "page_size", "retries_max_attempts", "connect_timeout", "read_timeout")
_BOOL_OPTIONS = ("keep_staging_on_failure", "progress")


def _options_from_dict(raw: Any) -> MigrationOptions:
    if raw is None:
        return MigrationOptions()
    if not isinstance(raw, dict):
        raise ConfigError("'options' must be a mapping")
    known = set(MigrationOptions.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"unknown options: {', '.join(sorted(unknown))}")
    opts = dict(raw)
    try:
        for name in ("download_policy", "upload_policy"):
            if name in opts:
                opts[name] = FailurePolicy(str(opts[name]).lower())
        if "empty_objects" in opts:
            opts["empty_objects"] = EmptyObjectPolicy(str(opts["empty_objects"]).lower())
        for name in _INT_OPTIONS:
            if opts.get(name) is None:
                opts.pop(name, None)
            else:
                opts[name] = int(opts[name])
        for name in _BOOL_OPTIONS:
            if name in opts and not isinstance(opts[name], bool):
                raise ConfigError(f"'options.{name}' must be true or false")
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid option value: {e}") from e
    if opts.get("max_workers", 1) < 1:
        raise ConfigError("'options.max_workers' must be >= 1")
    page_size = opts.get("page_size")
    if page_size is not None and not 1 <= page_size <= 1000:
        raise ConfigError("'options.page_size' must be between 1 and 1000")
    return MigrationOptions(**opts)


def config_from_dict(data: Dict[str, Any]) -> MigrationConfig:
    if not isinstance(data, dict) or not data:
        raise ConfigError("config is empty")
    return MigrationConfig(
        source=_endpoint_from_dict("source", data.get("source"), source_side=True),
        destination=_endpoint_from_dict("destination", data.get("destination"), source_side=False),
        options=_options_from_dict(data.get("options")),
    )


def load_config(path: str | Path = DEFAULT_CONFIG) -> MigrationConfig:
    """Read and validate the YAML settings document. Any problem is a ConfigError."""
    try:
        data = read_yaml(path)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"{path}: {e}") from e
    return config_from_dict(data)
