"""
Configuration Management for EntityStore

Options controlling which store backends get registered and how they key,
name and serialize records. Options can be built in code, from a dictionary,
from a JSON or YAML file, or from ``ENTITYSTORE_*`` environment variables.
"""

import json
import logging
import logging.handlers
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..core.keys import DEFAULT_FALLBACK_KEY_NAMES, KeySelector

ENV_PREFIX = "ENTITYSTORE_"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class LoggingConfig:
    """Logging configuration for the ``entitystore`` logger hierarchy"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    logger_name: str = "entitystore"

    def apply(self) -> logging.Logger:
        """
        Configure the package logger.

        Handlers installed by an earlier call are replaced, so applying a
        config twice does not duplicate output.
        """
        logger = logging.getLogger(self.logger_name)
        logger.setLevel(self.level.upper())

        for handler in [h for h in logger.handlers if getattr(h, "_entitystore_handler", False)]:
            logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(self.format)
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if self.file_path:
            Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                self.file_path, maxBytes=self.max_file_size, backupCount=self.backup_count
            ))

        for handler in handlers:
            handler.setFormatter(formatter)
            handler._entitystore_handler = True
            logger.addHandler(handler)
        return logger


@dataclass
class EntityStoreOptions:
    """
    Options for registering entity store services.

    Per-type settings (``json_indent_per_entity``, ``custom_key_selectors``,
    ``table_names``) are keyed by the record type's class name.
    """
    register_memory_store: bool = True
    register_file_store: bool = False
    register_db_store: bool = False
    register_sql_store: bool = False
    register_dynamic_types: bool = True

    file_store_directory: str = "entity_store"
    file_store_indent: Optional[int] = 2
    json_indent_per_entity: Dict[str, Optional[int]] = field(default_factory=dict)
    custom_key_selectors: Dict[str, KeySelector] = field(default_factory=dict)

    global_fallback_key_names: List[str] = field(
        default_factory=lambda: list(DEFAULT_FALLBACK_KEY_NAMES)
    )
    strict_fallback_keys: bool = False
    cache_fallback_stores: bool = False

    table_names: Dict[str, str] = field(default_factory=dict)
    db_context_factory: Optional[Callable[..., Any]] = None
    connection_factory: Optional[Callable[[], Any]] = None

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def any_store_enabled(self) -> bool:
        return (self.register_memory_store or self.register_file_store
                or self.register_db_store or self.register_sql_store)

    def indent_for(self, record_type: type) -> Optional[int]:
        return self.json_indent_per_entity.get(record_type.__name__, self.file_store_indent)

    def key_selector_for(self, record_type: type) -> Optional[KeySelector]:
        return self.custom_key_selectors.get(record_type.__name__)

    def table_name_for(self, record_type: type) -> str:
        return self.table_names.get(record_type.__name__, record_type.__name__)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> 'EntityStoreOptions':
        """
        Create options from a dictionary.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown EntityStoreOptions keys: {', '.join(sorted(unknown))}")

        options = cls()
        for key, value in config_dict.items():
            if key == "logging":
                for log_key, log_value in (value or {}).items():
                    if not hasattr(options.logging, log_key):
                        raise ValueError(f"Unknown logging option: {log_key}")
                    setattr(options.logging, log_key, log_value)
            elif key == "global_fallback_key_names" and isinstance(value, str):
                options.global_fallback_key_names = [value]
            else:
                setattr(options, key, value)
        return options

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'EntityStoreOptions':
        """Load options from a JSON or YAML file"""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix == '.json':
            with open(config_path) as f:
                config_dict = json.load(f)
        elif config_path.suffix in ('.yml', '.yaml'):
            import yaml
            with open(config_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

        return cls.from_dict(config_dict)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'EntityStoreOptions':
        """Create options from ``ENTITYSTORE_*`` environment variables"""
        env = os.environ if environ is None else environ
        options = cls()

        for name in ("register_memory_store", "register_file_store", "register_db_store",
                     "register_sql_store", "register_dynamic_types",
                     "strict_fallback_keys", "cache_fallback_stores"):
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                setattr(options, name, _parse_bool(value))

        if env.get(f"{ENV_PREFIX}FILE_STORE_DIRECTORY"):
            options.file_store_directory = env[f"{ENV_PREFIX}FILE_STORE_DIRECTORY"]

        if env.get(f"{ENV_PREFIX}FILE_STORE_INDENT"):
            indent = env[f"{ENV_PREFIX}FILE_STORE_INDENT"]
            options.file_store_indent = None if indent.lower() == "none" else int(indent)

        if env.get(f"{ENV_PREFIX}FALLBACK_KEY_NAMES"):
            options.global_fallback_key_names = [
                name.strip() for name in env[f"{ENV_PREFIX}FALLBACK_KEY_NAMES"].split(",")
                if name.strip()
            ]

        if env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            options.logging.level = env[f"{ENV_PREFIX}LOG_LEVEL"]

        if env.get(f"{ENV_PREFIX}LOG_FILE"):
            options.logging.file_path = env[f"{ENV_PREFIX}LOG_FILE"]

        return options

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the options; callables are left out"""
        return {
            "register_memory_store": self.register_memory_store,
            "register_file_store": self.register_file_store,
            "register_db_store": self.register_db_store,
            "register_sql_store": self.register_sql_store,
            "register_dynamic_types": self.register_dynamic_types,
            "file_store_directory": self.file_store_directory,
            "file_store_indent": self.file_store_indent,
            "json_indent_per_entity": dict(self.json_indent_per_entity),
            "global_fallback_key_names": list(self.global_fallback_key_names),
            "strict_fallback_keys": self.strict_fallback_keys,
            "cache_fallback_stores": self.cache_fallback_stores,
            "table_names": dict(self.table_names),
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "file_path": self.logging.file_path,
                "max_file_size": self.logging.max_file_size,
                "backup_count": self.logging.backup_count,
                "logger_name": self.logging.logger_name,
            },
        }


__all__ = ["EntityStoreOptions", "LoggingConfig", "ENV_PREFIX"]
