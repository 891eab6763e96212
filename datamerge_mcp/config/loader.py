"""Configuration file loading and validation.

Loads an optional YAML configuration file, expands ``${ENV_VAR}``
placeholders, overlays the well-known environment variables and
validates the result against the Pydantic models in :mod:`schema`.

The public API is :func:`load_settings`.
"""

import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from datamerge_mcp.config.schema import DataMergeSettings
from datamerge_mcp.constants import (
    API_KEY_ENV_VAR,
    BASE_URL_ENV_VAR,
    CONFIG_ENV_VAR,
    TRANSPORT_ENV_VAR,
)
from datamerge_mcp.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})

# Config file search order (first match wins)
_CONFIG_SEARCH_ORDER = ("datamerge-mcp.yaml", "datamerge-mcp.yml")

# env var → (section, field)
_ENV_OVERRIDES = {
    API_KEY_ENV_VAR: ("upstream", "api_key"),
    BASE_URL_ENV_VAR: ("upstream", "base_url"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    TRANSPORT_ENV_VAR: ("server", "transport"),
}

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")

# Marks a value that was nothing but an unset placeholder
_UNSET = object()


def find_config_file(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the config path: explicit flag, then env var, then CWD.

    Returns ``None`` when no file is configured and none is found; the
    server then runs on defaults plus environment variables.
    """
    if explicit:
        return explicit
    from_env = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if from_env:
        return from_env
    for name in _CONFIG_SEARCH_ORDER:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.isfile(candidate):
            return candidate
    return None


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except Exception as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _resolve_placeholders(value: Any, environ: Mapping[str, str]) -> Any:
    """Substitute ``${VAR}`` references in the raw YAML tree from *environ*.

    A string that is only a placeholder for an unset variable resolves to
    nothing at all: its key (or list item) is dropped so the model default
    applies. ``api_key: ${DATAMERGE_API_KEY}`` therefore means "no
    fallback credential" when the variable is unset, instead of sending
    the literal placeholder upstream. Placeholders embedded in longer
    strings are left as written.
    """
    if isinstance(value, str):
        whole = _PLACEHOLDER_RE.fullmatch(value.strip())
        if whole and not environ.get(whole.group(1)):
            logger.debug("Config placeholder ${%s} is unset; using default.", whole.group(1))
            return _UNSET
        return _PLACEHOLDER_RE.sub(lambda m: environ.get(m.group(1), m.group(0)), value)
    if isinstance(value, dict):
        resolved = {k: _resolve_placeholders(v, environ) for k, v in value.items()}
        return {k: v for k, v in resolved.items() if v is not _UNSET}
    if isinstance(value, list):
        resolved = [_resolve_placeholders(item, environ) for item in value]
        return [item for item in resolved if item is not _UNSET]
    return value


def _apply_env_overrides(raw_data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name, "").strip()
        if not value:
            continue
        target = raw_data.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigurationError(f"Configuration section '{section}' must be a mapping.")
        target[key] = value
        logger.debug("Config value %s.%s taken from %s.", section, key, env_name)
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


# ── Public API ───────────────────────────────────────────────────────────


def load_settings(
    cfg_fpath: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DataMergeSettings:
    """Load, expand, overlay, validate and return the settings.

    Steps:
        1. Read the YAML file, if one is configured or found
        2. Resolve ``${VAR}`` references against *environ*, dropping unset ones
        3. Overlay ``DATAMERGE_*``, ``HOST`` and ``PORT`` environment variables
        4. Validate against :class:`DataMergeSettings` (Pydantic)

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures (all errors reported at once).
    """
    if environ is None:
        environ = os.environ

    raw_data: Dict[str, Any] = {}
    if cfg_fpath is not None:
        logger.debug("Loading configuration file: %s", cfg_fpath)
        raw_data = _resolve_placeholders(_read_config_file(cfg_fpath), environ)

    raw_data = _apply_env_overrides(raw_data, environ)

    try:
        settings = DataMergeSettings.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc

    logger.info(
        "Configuration loaded from %s (fallback credential %s).",
        cfg_fpath or "defaults/environment",
        "present" if settings.upstream.api_key else "absent",
    )
    return settings
