"""
freight_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain policy configuration at runtime
    through ``get_active_config()``.  Returns a ``WorkflowConfigurationSet``
    whose policy tables drive the stage machine, the field permission
    resolver, the commission engine and the edit-lock manager.

Architecture position:
    Configuration -- YAML-driven policy tables, validated on load.
    Sits above ``freight_kernel`` and below ``freight_services``.  The
    kernel and the engines MUST NEVER import from ``freight_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation before use: a set with validation errors is never returned.
    - Deterministic checksum: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file does not exist.
    - ``InvalidConfigurationError`` -- validation failed; carries every error.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FREIGHT_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying permission decisions to the configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from freight_config.loader import load_yaml_file, parse_configuration_set
from freight_config.schema import WorkflowConfigurationSet, builtin_configuration_set
from freight_config.validator import ConfigValidationResult, validate_configuration
from freight_kernel.exceptions import InvalidConfigurationError

_logger = logging.getLogger("freight_kernel.config")

# Bundled configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> WorkflowConfigurationSet:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned set has passed validation.
        - A ``FREIGHT_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching; callers hold the returned set.

    Args:
        config_path: YAML file to load.  Defaults to the bundled
            ``freight_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidConfigurationError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)

    validation = validate_configuration(data)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning, "path": str(path)})
    if not validation.is_valid:
        raise InvalidConfigurationError(str(data.get("config_id") or path.name), validation.errors)

    config_set = parse_configuration_set(data)

    _logger.info(
        "FREIGHT_CONFIG_TRACE",
        extra={
            "trace_type": "FREIGHT_CONFIG_TRACE",
            "config_set_id": config_set.config_id,
            "config_set_version": config_set.version,
            "checksum": config_set.checksum,
            "categorized_field_count": len(config_set.permission_policy.field_categories),
            "lock_timeout_seconds": config_set.lock_policy.timeout_seconds,
        },
    )
    return config_set


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "WorkflowConfigurationSet",
    "builtin_configuration_set",
    "get_active_config",
    "validate_configuration",
]
