"""
Runtime configuration.

Sources, later ones winning: built-in defaults, an optional JSON config
file, then FOUND_WIZARD_* environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from found_wizard.mapping import MIN_LABEL_WORD_LENGTH, PERFECT_MATCH_RATIO, MappingHeuristics

DEFAULT_PROFILE_PATH = Path.home() / ".found-wizard" / "profile.json"
ENV_SCHEMA = "FOUND_WIZARD_SCHEMA"
ENV_PROFILE_PATH = "FOUND_WIZARD_PROFILE_PATH"
ENV_PERFECT_RATIO = "FOUND_WIZARD_PERFECT_RATIO"
ENV_NO_PROFILE = "FOUND_WIZARD_NO_PROFILE"
TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class WizardConfig:
    schema_path: str | None = None
    profile_path: str = str(DEFAULT_PROFILE_PATH)
    perfect_match_ratio: float = PERFECT_MATCH_RATIO
    min_label_word_length: int = MIN_LABEL_WORD_LENGTH
    use_profiles: bool = True

    @property
    def heuristics(self) -> MappingHeuristics:
        return MappingHeuristics(
            perfect_match_ratio=self.perfect_match_ratio,
            min_label_word_length=self.min_label_word_length,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _check(config: WizardConfig) -> WizardConfig:
    if isinstance(config.perfect_match_ratio, bool) or not isinstance(config.perfect_match_ratio, (int, float)):
        raise ConfigError("perfect_match_ratio must be a number")
    if isinstance(config.min_label_word_length, bool) or not isinstance(config.min_label_word_length, int):
        raise ConfigError("min_label_word_length must be an integer")
    if not isinstance(config.use_profiles, bool):
        raise ConfigError("use_profiles must be true or false")
    if not 0.0 < config.perfect_match_ratio <= 1.0:
        raise ConfigError("perfect_match_ratio must be in (0, 1]")
    if config.min_label_word_length < 1:
        raise ConfigError("min_label_word_length must be at least 1")
    return config


def _from_file(config: WizardConfig, path: Path) -> WizardConfig:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    known = set(WizardConfig.__dataclass_fields__)
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")
    try:
        return replace(config, **payload)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc


def _from_env(config: WizardConfig, environ: Mapping[str, str]) -> WizardConfig:
    updates: dict[str, Any] = {}
    if environ.get(ENV_SCHEMA):
        updates["schema_path"] = environ[ENV_SCHEMA]
    if environ.get(ENV_PROFILE_PATH):
        updates["profile_path"] = environ[ENV_PROFILE_PATH]
    if environ.get(ENV_PERFECT_RATIO):
        try:
            updates["perfect_match_ratio"] = float(environ[ENV_PERFECT_RATIO])
        except ValueError as exc:
            raise ConfigError(f"{ENV_PERFECT_RATIO} must be a number") from exc
    if environ.get(ENV_NO_PROFILE, "").strip().lower() in TRUTHY:
        updates["use_profiles"] = False
    return replace(config, **updates)


def load_config(path: "str | Path | None" = None, environ: Mapping[str, str] | None = None) -> WizardConfig:
    config = WizardConfig()
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config not found: {path}")
        config = _from_file(config, path)
    config = _from_env(config, os.environ if environ is None else environ)
    return _check(config)
