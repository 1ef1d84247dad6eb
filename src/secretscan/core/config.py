"""
Configuration module for secretscan.

Supports loading from TOML/YAML/JSON files with environment variable overrides.
Default values, including the built-in rule set, are loaded from defaults.yaml.
"""

import copy
import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from secretscan.core.ignore_matcher import IgnoreSpec, load_ignore_spec
from secretscan.core.rules import RuleSpec

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None

SUPPORTED_REPORT_FORMATS = ("json", "csv")

# Section keys holding lists; a bare string would be iterated character by character
_LIST_FIELDS = {
    "ignore": ("files", "directories", "patterns", "sensitive_suffixes"),
    "scanning": ("default_ignore_patterns",),
}


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a copy of a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section) or {}
    return copy.deepcopy(section_defaults.get(key, fallback))


def _default_rules() -> list[RuleSpec]:
    """Build the built-in rule set from defaults.yaml."""
    entries = _load_defaults().get("rules") or []
    return [RuleSpec.from_dict(entry) for entry in entries]


@dataclass
class IgnoreConfig:
    """Configuration for path exclusion."""

    files: list[str] = field(default_factory=lambda: _get_default("ignore", "files", []))
    directories: list[str] = field(
        default_factory=lambda: _get_default("ignore", "directories", [])
    )
    patterns: list[str] = field(
        default_factory=lambda: _get_default("ignore", "patterns", [])
    )
    sensitive_suffixes: list[str] = field(
        default_factory=lambda: _get_default("ignore", "sensitive_suffixes", [])
    )
    ignore_file: str = field(
        default_factory=lambda: _get_default("ignore", "ignore_file", ".gitignore")
    )


@dataclass
class ScanningConfig:
    """Configuration for the scanning engine."""

    max_workers: Optional[int] = field(
        default_factory=lambda: _get_default("scanning", "max_workers", None)
    )
    queue_size: Optional[int] = field(
        default_factory=lambda: _get_default("scanning", "queue_size", None)
    )
    skip_binary: bool = field(
        default_factory=lambda: _get_default("scanning", "skip_binary", False)
    )
    default_ignore_patterns: list[str] = field(
        default_factory=lambda: _get_default("scanning", "default_ignore_patterns", [".git/"])
    )


@dataclass
class ReportConfig:
    """Configuration for the scan report."""

    enabled: bool = field(default_factory=lambda: _get_default("report", "enabled", True))
    format: str = field(default_factory=lambda: _get_default("report", "format", "json"))
    output_dir: str = field(
        default_factory=lambda: _get_default("report", "output_dir", "reports")
    )


@dataclass
class NotifyConfig:
    """Configuration for webhook notifications. An empty URL disables notifications."""

    webhook_url: str = field(default_factory=lambda: _get_default("notify", "webhook_url", ""))
    timeout: float = field(default_factory=lambda: _get_default("notify", "timeout", 10.0))


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


@dataclass
class SecretScanConfig:
    """Main configuration class for secretscan."""

    rules: list[RuleSpec] = field(default_factory=_default_rules)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    scanning: ScanningConfig = field(default_factory=ScanningConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "SecretScanConfig":
        """
        Load configuration from a TOML, YAML or JSON file.

        Args:
            path: Path to the configuration file (.toml, .yaml, .yml, or .json)

        Returns:
            SecretScanConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported or the content is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        try:
            if path.suffix == ".toml":
                data = tomllib.loads(content)
            elif path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif path.suffix == ".json":
                data = json.loads(content) if content.strip() else {}
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")
        except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "SecretScanConfig":
        """Create SecretScanConfig from a dictionary."""
        config = cls()

        if "rules" in data:
            entries = data["rules"] or []
            if not isinstance(entries, list):
                raise ValueError("'rules' must be a list of rule entries")
            config.rules = [RuleSpec.from_dict(entry) for entry in entries]

        sections = {
            "ignore": IgnoreConfig,
            "scanning": ScanningConfig,
            "report": ReportConfig,
            "notify": NotifyConfig,
            "logging": LoggingConfig,
        }
        for name, section_cls in sections.items():
            if name not in data:
                continue
            values = data[name] or {}
            if not isinstance(values, dict):
                raise ValueError(f"'{name}' must be a mapping")
            for key in _LIST_FIELDS.get(name, ()):
                if key in values and not isinstance(values[key], list):
                    raise ValueError(f"'{name}.{key}' must be a list of strings")
            try:
                setattr(config, name, section_cls(**values))
            except TypeError as e:
                raise ValueError(f"Invalid '{name}' section: {e}") from e

        return config

    def apply_env_overrides(self) -> "SecretScanConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: SECRETSCAN_<SECTION>_<KEY>
        Examples:
            - SECRETSCAN_SCANNING_MAX_WORKERS
            - SECRETSCAN_NOTIFY_WEBHOOK_URL
            - SECRETSCAN_REPORT_FORMAT
            - SECRETSCAN_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            # Scanning config
            "SECRETSCAN_SCANNING_MAX_WORKERS": ("scanning", "max_workers", int),
            "SECRETSCAN_SCANNING_QUEUE_SIZE": ("scanning", "queue_size", int),
            "SECRETSCAN_SCANNING_SKIP_BINARY": ("scanning", "skip_binary", _parse_bool),
            # Report config
            "SECRETSCAN_REPORT_ENABLED": ("report", "enabled", _parse_bool),
            "SECRETSCAN_REPORT_FORMAT": ("report", "format", str),
            "SECRETSCAN_REPORT_OUTPUT_DIR": ("report", "output_dir", str),
            # Notify config
            "SECRETSCAN_NOTIFY_WEBHOOK_URL": ("notify", "webhook_url", str),
            "SECRETSCAN_NOTIFY_TIMEOUT": ("notify", "timeout", float),
            # Logging config
            "SECRETSCAN_LOGGING_LEVEL": ("logging", "level", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        return self

    def build_ignore_spec(self, root: Path) -> IgnoreSpec:
        """
        Build the IgnoreSpec for a scan root, reading its ignore file.

        Raises:
            IgnoreFileReadError: If the ignore file exists but cannot be read
        """
        return load_ignore_spec(
            root,
            files=self.ignore.files,
            directories=self.ignore.directories,
            extra_patterns=list(self.scanning.default_ignore_patterns) + list(self.ignore.patterns),
            sensitive_suffixes=self.ignore.sensitive_suffixes,
            ignore_file=self.ignore.ignore_file,
        )

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


def _parse_bool(value: str) -> bool:
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes", "on")


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> SecretScanConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        SecretScanConfig instance
    """
    if config_path:
        config = SecretScanConfig.from_file(config_path)
    else:
        config = SecretScanConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
