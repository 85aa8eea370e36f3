"""Config Loader - Loads client configuration and operation catalogs.

Handles loading YAML files with ${ENV_VAR} substitution and validating them
into ClientConfig and OperationSpec models.

Client config errors are ConfigurationErrors (fatal at construction).
Catalog errors are ProgrammerErrors: a malformed catalog is a bug, not a
runtime condition.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import pydantic
import yaml

from riakcs_client.errors import ConfigurationError, ProgrammerError
from riakcs_client.models import ClientConfig, OperationSpec

# Top-level keys accepted as shorthand for the nested credentials block
_CREDENTIAL_KEYS = ("access_key_id", "secret_access_key", "account_id")


def build_client_config(raw: Mapping[str, Any]) -> ClientConfig:
    """Validate a raw mapping into a ClientConfig.

    Accepts credentials either nested under ``credentials`` or as top-level
    ``access_key_id`` / ``secret_access_key`` / ``account_id`` keys.

    Raises:
        ConfigurationError: If a required value is missing or invalid.
    """
    data = dict(raw)
    credentials = dict(data.pop("credentials", None) or {})
    for key in _CREDENTIAL_KEYS:
        if key in data:
            credentials[key] = data.pop(key)
    data["credentials"] = credentials

    try:
        return ClientConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid client configuration: {_describe(e)}") from e


def load_client_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML with ${ENV_VAR} substitution."""
    raw_config = _load_yaml_mapping(config_path, ConfigurationError, "Config")
    return build_client_config(_substitute_env_vars(raw_config))


def build_catalog(raw: Mapping[str, Any]) -> dict[str, OperationSpec]:
    """Validate a mapping of operation name -> raw spec into OperationSpecs.

    A raw spec may carry ``extract_headers_regex`` which is compiled into the
    ``extract_headers`` mode.

    Raises:
        ProgrammerError: If any entry is malformed.
    """
    catalog: dict[str, OperationSpec] = {}
    for name, raw_spec in raw.items():
        if not isinstance(raw_spec, dict):
            raise ProgrammerError(f"Operation {name} must be a mapping")
        spec_data = dict(raw_spec)
        spec_data.setdefault("name", name)
        pattern = spec_data.pop("extract_headers_regex", None)
        if pattern is not None:
            if "extract_headers" in spec_data:
                raise ProgrammerError(
                    f"Operation {name}: extract_headers and extract_headers_regex are exclusive"
                )
            try:
                spec_data["extract_headers"] = re.compile(pattern)
            except re.error as e:
                raise ProgrammerError(f"Operation {name}: invalid header regex: {e}") from e
        try:
            catalog[name] = OperationSpec.model_validate(spec_data)
        except pydantic.ValidationError as e:
            raise ProgrammerError(f"Invalid operation {name}: {_describe(e)}") from e
    return catalog


def load_catalog(catalog_path: Path) -> dict[str, OperationSpec]:
    """Load an operation catalog from YAML.

    Expected layout::

        operations:
          ListBuckets:
            method: GET
            path: /
    """
    raw = _load_yaml_mapping(catalog_path, ProgrammerError, "Catalog")
    operations = raw.get("operations")
    if not isinstance(operations, dict):
        raise ProgrammerError("Catalog file must have an 'operations' mapping")
    return build_catalog(operations)


def _load_yaml_mapping(path: Path, error: type[Exception], label: str) -> dict[str, Any]:
    if not path.exists():
        raise error(f"{label} file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise error(f"Invalid YAML in {label.lower()} file: {e}") from e

    if not isinstance(raw, dict):
        raise error(f"{label} file must be a YAML mapping")
    return raw


def _describe(e: pydantic.ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigurationError if env var is not set."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(f"Environment variable '{var_name}' is not set")
        return value

    return pattern.sub(replacer, s)
