"""Benchmark configuration and profile loading.

Handles:
- The immutable ``BenchConfig`` with the hardcoded defaults.
- Applying partial overrides layer by layer (hardcoded defaults,
  then harness defaults, then per-call overrides).
- Validating the final configuration before any candidate runs.
- Loading override layers from YAML benchmark profiles.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from microbench.bench.errors import InvalidConfiguration
from microbench.logging import get_logger

log = get_logger("config")


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchConfig:
    """Resolved configuration for a benchmark run."""

    warmup_iterations: int = 10  # Untimed priming executions
    iterations: int = 100  # Timed executions
    timeout_ms: int = 60000  # Advisory budget for the whole run
    collect_memory: bool = True
    collect_cpu: bool = True
    force_gc: bool = True
    enforce_timeout: bool = False  # Opt-in deadline checks

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return dataclasses.asdict(self)


_INT_FIELDS = ("warmup_iterations", "iterations", "timeout_ms")
_FLAG_FIELDS = ("collect_memory", "collect_cpu", "force_gc", "enforce_timeout")


def config_fields() -> set[str]:
    """Names of all configurable fields."""
    return {f.name for f in dataclasses.fields(BenchConfig)}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a benchmark configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    for name in _INT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(
                ValidationError(
                    field=name,
                    message=f"Must be an integer (got {value!r}).",
                )
            )

    for name in _FLAG_FIELDS:
        value = getattr(config, name)
        if not isinstance(value, bool):
            errors.append(
                ValidationError(
                    field=name,
                    message=f"Must be true or false (got {value!r}).",
                )
            )

    # Type errors make the range checks below meaningless.
    if errors:
        return errors

    if config.iterations < 1:
        errors.append(
            ValidationError(
                field="iterations",
                message=f"Need at least 1 measured iteration (got {config.iterations}).",
            )
        )
    elif config.iterations < 3:
        errors.append(
            ValidationError(
                field="iterations",
                message=(
                    f"Only {config.iterations} measured iteration(s); "
                    f"percentiles will not be meaningful."
                ),
                severity="warning",
            )
        )

    if config.warmup_iterations < 0:
        errors.append(
            ValidationError(
                field="warmup_iterations",
                message=(
                    f"Warmup iterations cannot be negative (got {config.warmup_iterations})."
                ),
            )
        )

    if config.timeout_ms <= 0:
        errors.append(
            ValidationError(
                field="timeout_ms",
                message=f"Timeout must be positive (got {config.timeout_ms}).",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# Layered resolution
# ---------------------------------------------------------------------------


def apply_overrides(
    base: BenchConfig,
    overrides: Mapping[str, Any] | BenchConfig | None,
) -> BenchConfig:
    """Return a copy of *base* with the supplied fields replaced.

    *overrides* is a partial mapping; ``None`` values mean "not
    supplied" and leave the base value in place.  A full BenchConfig
    replaces every field.

    Raises:
        InvalidConfiguration: If *overrides* names an unknown field.
    """
    if overrides is None:
        return base
    if isinstance(overrides, BenchConfig):
        return overrides

    known = config_fields()
    unknown = sorted(k for k in overrides if k not in known)
    if unknown:
        raise InvalidConfiguration(
            [
                ValidationError(
                    field=key,
                    message=f"Unknown option. Valid options: {', '.join(sorted(known))}.",
                )
                for key in unknown
            ]
        )

    supplied = {k: v for k, v in overrides.items() if v is not None}
    return dataclasses.replace(base, **supplied)


def resolve_config(
    *layers: Mapping[str, Any] | BenchConfig | None,
) -> BenchConfig:
    """Merge override layers over the hardcoded defaults and validate.

    Layers are applied in order, so later layers win.  The runner
    passes its own defaults first and the per-call overrides second.

    Raises:
        InvalidConfiguration: If the merged configuration is invalid.
    """
    config = BenchConfig()
    for layer in layers:
        config = apply_overrides(config, layer)

    errors = validate_config(config)
    for w in errors:
        if w.severity == "warning":
            log.warning("Config warning: %s: %s", w.field, w.message)
    fatal = [e for e in errors if e.severity == "error"]
    if fatal:
        raise InvalidConfiguration(fatal)
    return config


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a benchmark profile from a YAML file.

    Profile format::

        warmup_iterations: 5
        iterations: 50
        timeout_ms: 30000
        collect_memory: false
        force_gc: true

    Returns:
        The parsed YAML as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid YAML or not a mapping.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in profile {profile_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


def config_from_profile(profile_data: Mapping[str, Any]) -> dict[str, Any]:
    """Turn a parsed profile into an override layer.

    Keys use the BenchConfig field names.  A nested ``config:``
    mapping is accepted as well, so profiles can carry other
    top-level keys (such as ``name``) alongside the settings.

    Raises:
        ValueError: If the profile contains unknown settings.
    """
    data: Mapping[str, Any] = profile_data
    if "config" in profile_data:
        nested = profile_data["config"]
        if not isinstance(nested, dict):
            raise ValueError("Profile 'config' must be a mapping of option -> value")
        data = nested

    known = config_fields()
    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key == "name" and data is profile_data:
            continue
        if key not in known:
            raise ValueError(
                f"Unknown profile option '{key}'. Valid options: {', '.join(sorted(known))}"
            )
        overrides[key] = value
    return overrides
