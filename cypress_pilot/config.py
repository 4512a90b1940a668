"""Configuration loader for cypress-pilot.

Loads and validates pilot.yml against schemas/pilot-config.schema.json
and maps it onto typed dataclasses. Every section is optional; missing
values fall back to the defaults below.
"""

from __future__ import annotations

import json
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft7Validator

from .classify import (
    DEFAULT_DEFECT_SIGNATURES,
    DEFAULT_FAILING_PATTERN,
    DEFAULT_PASS_PHRASES,
    DEFAULT_PASSING_PATTERN,
    DefectSignature,
    Signatures,
)


SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"

CONFIG_ENV_VAR = "CYPRESS_PILOT_CONFIG"

# Directory (relative to the project root) holding pilot configuration
PILOT_DIR = ".cypress-pilot"

DEFAULT_SPEC_DIR = "cypress/e2e"
DEFAULT_ENGINES = ["chrome", "firefox"]
DEFAULT_MAX_LOG_CHARS = 2500

# Overrides applied to the runner's environment only
DEFAULT_RUNNER_ENV = {
    "DISPLAY": "",
    "CYPRESS_VIDEO": "false",
}

DEFAULT_STRUCTURE_DIRS = [
    "src/app",
    "app",
    "src/pages",
    "pages",
    "src/components",
    "components",
    "src/routes",
    "routes",
    "cypress/e2e",
    "cypress/integration",
]


def _read_schema(schema_name: str) -> Dict[str, Any]:
    """Load a JSON schema from the schemas directory."""
    schema_path = SCHEMAS_DIR / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_against_schema(data: Any, schema_name: str) -> Tuple[bool, List[str]]:
    """Validate data against a JSON schema.

    Args:
        data: The data to validate
        schema_name: Name of schema file in schemas/ directory

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    schema = _read_schema(schema_name)
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, []

    messages: List[str] = []
    for err in errors[:50]:
        location = ".".join([str(p) for p in err.absolute_path]) or "<root>"
        messages.append(f"{location}: {err.message}")

    if len(errors) > 50:
        messages.append(f"... and {len(errors) - 50} more errors")

    return False, messages


@dataclass
class RunnerConfig:
    """How the Cypress runner is invoked."""
    command: List[str] = field(default_factory=lambda: ["npx", "cypress"])
    base_args: List[str] = field(default_factory=lambda: ["run"])
    engines: List[str] = field(default_factory=lambda: list(DEFAULT_ENGINES))
    spec_dir: str = DEFAULT_SPEC_DIR
    timeout_seconds: Optional[float] = 1800
    max_log_chars: int = DEFAULT_MAX_LOG_CHARS
    launch_window_seconds: float = 5.0
    env: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RUNNER_ENV))


@dataclass
class GeneratorConfig:
    """Generative model settings."""
    model: Optional[str] = None
    timeout_seconds: int = 600


@dataclass
class CloneConfig:
    """Repository cloning settings."""
    depth: int = 1
    temp_prefix: str = "cypress-pilot-repo-"
    timeout_seconds: int = 300


@dataclass
class StructureConfig:
    """Repository structure summary settings."""
    max_items: int = 30
    directories: List[str] = field(default_factory=lambda: list(DEFAULT_STRUCTURE_DIRS))


@dataclass
class PilotConfig:
    """Full cypress-pilot configuration with structured access."""
    path: Optional[Path] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)
    version: str = "1"
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    signatures: Signatures = field(default_factory=Signatures)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    clone: CloneConfig = field(default_factory=CloneConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)


def _parse_command(value: Any) -> List[str]:
    if isinstance(value, str):
        return shlex.split(value)
    return list(value)


def _parse_runner(runner_data: Dict[str, Any]) -> RunnerConfig:
    """Parse the runner section into a RunnerConfig."""
    env = dict(DEFAULT_RUNNER_ENV)
    env.update(runner_data.get("env", {}))
    return RunnerConfig(
        command=_parse_command(runner_data.get("command", ["npx", "cypress"])),
        base_args=list(runner_data.get("base_args", ["run"])),
        engines=list(runner_data.get("engines", DEFAULT_ENGINES)),
        spec_dir=runner_data.get("spec_dir", DEFAULT_SPEC_DIR),
        timeout_seconds=runner_data.get("timeout_seconds", 1800),
        max_log_chars=runner_data.get("max_log_chars", DEFAULT_MAX_LOG_CHARS),
        launch_window_seconds=runner_data.get("launch_window_seconds", 5.0),
        env=env,
    )


def _parse_signatures(signature_data: Dict[str, Any]) -> Signatures:
    """Parse the signatures section; unspecified rules keep their defaults."""
    defects = DEFAULT_DEFECT_SIGNATURES
    if "defects" in signature_data:
        defects = tuple(
            DefectSignature(
                kind=d["kind"],
                all_of=tuple(d["all_of"]),
                dependency=d.get("dependency", d["kind"]),
            )
            for d in signature_data["defects"]
        )
    return Signatures(
        pass_phrases=tuple(signature_data.get("pass_phrases", DEFAULT_PASS_PHRASES)),
        passing_pattern=signature_data.get("passing_pattern", DEFAULT_PASSING_PATTERN),
        failing_pattern=signature_data.get("failing_pattern", DEFAULT_FAILING_PATTERN),
        defects=defects,
    )


def _parse_generator(generator_data: Dict[str, Any]) -> GeneratorConfig:
    return GeneratorConfig(
        model=generator_data.get("model"),
        timeout_seconds=generator_data.get("timeout_seconds", 600),
    )


def _parse_clone(clone_data: Dict[str, Any]) -> CloneConfig:
    return CloneConfig(
        depth=clone_data.get("depth", 1),
        temp_prefix=clone_data.get("temp_prefix", "cypress-pilot-repo-"),
        timeout_seconds=clone_data.get("timeout_seconds", 300),
    )


def _parse_structure(structure_data: Dict[str, Any]) -> StructureConfig:
    return StructureConfig(
        max_items=structure_data.get("max_items", 30),
        directories=list(structure_data.get("directories", DEFAULT_STRUCTURE_DIRS)),
    )


def parse_config(raw_data: Dict[str, Any], path: Optional[Path] = None) -> PilotConfig:
    """Validate a raw configuration mapping and build a PilotConfig.

    Raises:
        ValueError: If the data is invalid against the schema.
    """
    valid, errors = validate_against_schema(raw_data, "pilot-config.schema.json")
    if not valid:
        where = f" in {path}" if path else ""
        raise ValueError(
            f"Invalid configuration{where}:\n" +
            "\n".join(f"  - {e}" for e in errors)
        )

    return PilotConfig(
        path=path,
        raw_data=raw_data,
        version=raw_data.get("version", "1"),
        runner=_parse_runner(raw_data.get("runner", {})),
        signatures=_parse_signatures(raw_data.get("signatures", {})),
        generator=_parse_generator(raw_data.get("generator", {})),
        clone=_parse_clone(raw_data.get("clone", {})),
        structure=_parse_structure(raw_data.get("structure", {})),
    )


def default_config() -> PilotConfig:
    """Configuration used when no pilot.yml exists."""
    return PilotConfig()


def get_default_config_path(root: Optional[Path] = None) -> Path:
    """Get the default configuration file path."""
    if root is None:
        root = Path.cwd()
    return root / PILOT_DIR / "pilot.yml"


def load_config(
    config_path: Optional[Path] = None,
    root: Optional[Path] = None,
) -> PilotConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to pilot.yml. Defaults to .cypress-pilot/pilot.yml in root.
        root: Directory to look in. Defaults to current working directory.

    Returns:
        PilotConfig instance with parsed configuration.

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist.
        ValueError: If config is invalid against schema.
    """
    explicit = config_path is not None

    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        config_path = Path(env_config)
        explicit = True

    if config_path is None:
        config_path = get_default_config_path(root)
    config_path = config_path.resolve()

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        return default_config()

    raw_data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Invalid configuration in {config_path}: expected a mapping")

    return parse_config(raw_data, path=config_path)
