# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the codex reconciler."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".codex_reconciler.yml"

# Synonym table keyed by normalized term (financial/CRUD vocabulary)
DEFAULT_SYNONYM_TABLE: Dict[str, List[str]] = {
    "money": ["coin", "amount", "balance", "value", "price"],
    "user": ["userdata", "userinfo", "profile", "account"],
    "order": ["purchase", "booking"],
    "product": ["item", "goods"],
    "payment": ["transaction", "transfer", "charge"],
}

# Database type keyword -> API type texts considered compatible
DEFAULT_TYPE_COMPATIBILITY: Dict[str, List[str]] = {
    "bigint": ["string", "number"],
    "varchar": ["string"],
    "boolean": ["bool", "boolean"],
    "timestamp": ["Date", "DateTime", "string"],
    "decimal": ["number", "float", "Decimal"],
}


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the codex reconciler.

    Loads configuration from .codex_reconciler.yml with validation and defaults.
    Values passed in ``overrides`` are validated the same way and take
    precedence over the file.
    """

    DEFAULTS: Dict[str, Any] = {
        "similarity_threshold": 0.6,
        "synonym_table": DEFAULT_SYNONYM_TABLE,
        "type_compatibility": DEFAULT_TYPE_COMPATIBILITY,
        "database_path_keywords": ["schema", "migration", "database"],
        "api_path_keywords": ["api", "routes", "controller", "handler", "dto"],
        "backend_path_keywords": ["service", "model", "entity"],
        "schema_file_extension": ".prisma",
        "source_root": "src",
        "default_feature": "common",
        "ignored_callees": [
            "console",
            "require",
            "log",
            "map",
            "filter",
            "reduce",
            "forEach",
            "push",
            "then",
            "catch",
            "parseInt",
            "parseFloat",
            "setTimeout",
            "print",
            "len",
            "range",
        ],
        "max_type_usages": 5,
    }

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
            overrides: Values applied after the file has been loaded.

        Raises:
            ConfigurationError: If overrides is not a dictionary.
        """
        if overrides is not None and not isinstance(overrides, dict):
            raise ConfigurationError(
                f"Configuration overrides must be a dict, got {type(overrides)}"
            )
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()
        if overrides:
            self._validate_and_merge(overrides)

    @classmethod
    def defaults(cls) -> "Config":
        """Configuration built from DEFAULTS only, ignoring any file on disk."""
        config = cls.__new__(cls)
        config.config_path = None
        config._config = copy.deepcopy(cls.DEFAULTS)
        return config

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        self._config = copy.deepcopy(self.DEFAULTS)

        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            return
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        self._validate_and_merge(loaded_config)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        if key == "similarity_threshold":
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            return bool(0 < value <= 1)

        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type) or isinstance(value, bool) != isinstance(
            self.DEFAULTS[key], bool
        ):
            return False

        if key == "max_type_usages":
            return bool(value > 0)
        elif key in ("synonym_table", "type_compatibility"):
            # Must map strings to lists of strings
            for term, entries in value.items():
                if not isinstance(term, str):
                    return False
                if not isinstance(entries, list):
                    return False
                if not all(isinstance(e, str) for e in entries):
                    return False
            return True
        elif key.endswith("_keywords") or key == "ignored_callees":
            return all(isinstance(v, str) for v in value)
        elif key in ("schema_file_extension", "default_feature"):
            return bool(value)

        return True

    @property
    def similarity_threshold(self) -> float:
        """Character-overlap ratio above which two names are similar."""
        value = self._config["similarity_threshold"]
        assert isinstance(value, (int, float))
        return float(value)

    @property
    def synonym_table(self) -> Dict[str, List[str]]:
        """Normalized term -> normalized synonyms used for entity clustering."""
        value = self._config["synonym_table"]
        assert isinstance(value, dict)
        return value

    @property
    def type_compatibility(self) -> Dict[str, List[str]]:
        """Database type keyword -> compatible API type texts."""
        value = self._config["type_compatibility"]
        assert isinstance(value, dict)
        return value

    @property
    def database_path_keywords(self) -> List[str]:
        """Path keywords marking database-layer files."""
        value = self._config["database_path_keywords"]
        assert isinstance(value, list)
        return value

    @property
    def api_path_keywords(self) -> List[str]:
        """Path keywords marking API-layer files."""
        value = self._config["api_path_keywords"]
        assert isinstance(value, list)
        return value

    @property
    def backend_path_keywords(self) -> List[str]:
        """Path keywords marking backend-layer files."""
        value = self._config["backend_path_keywords"]
        assert isinstance(value, list)
        return value

    @property
    def schema_file_extension(self) -> str:
        """Extension of schema files holding ``model`` declarations."""
        value = self._config["schema_file_extension"]
        assert isinstance(value, str)
        return value

    @property
    def source_root(self) -> str:
        """Top-level source directory name (e.g. "src")."""
        value = self._config["source_root"]
        assert isinstance(value, str)
        return value

    @property
    def default_feature(self) -> str:
        """Feature name for files outside any recognized structure."""
        value = self._config["default_feature"]
        assert isinstance(value, str)
        return value

    @property
    def ignored_callees(self) -> List[str]:
        """Built-in and library names left out of the unresolved call list."""
        value = self._config["ignored_callees"]
        assert isinstance(value, list)
        return value

    @property
    def max_type_usages(self) -> int:
        """Maximum number of usage sites listed per type declaration."""
        value = self._config["max_type_usages"]
        assert isinstance(value, int)
        return value
