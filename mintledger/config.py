"""
mintledger configuration.

A small YAML file, all keys optional:

    journal_path: .mintledger/ledger.jsonl
    key_dir:      .mintledger/keys

Relative paths resolve against the directory holding the file.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from mintledger.core.exceptions import ConfigError

DEFAULT_CONFIG_FILE  = "mintledger.yaml"
DEFAULT_JOURNAL_PATH = ".mintledger/ledger.jsonl"
DEFAULT_KEY_DIR      = ".mintledger/keys"


@dataclass
class LedgerConfig:
    """Where the journal and the account keys live."""

    journal_path: Path = Path(DEFAULT_JOURNAL_PATH)
    key_dir:      Path = Path(DEFAULT_KEY_DIR)

    @classmethod
    def from_yaml(cls, config_file: Path) -> "LedgerConfig":
        """Load configuration from a YAML file."""
        config_file = Path(config_file)
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigError(
                "cannot read config file", {"path": str(config_file), "error": exc}
            ) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(
                "config file is not valid YAML", {"path": str(config_file)}
            ) from exc

        return cls.from_dict(data or {}, base_dir=config_file.parent)

    @classmethod
    def from_dict(cls, data: dict, base_dir: Optional[Path] = None) -> "LedgerConfig":
        if not isinstance(data, dict):
            raise ConfigError("config must be a mapping")

        known   = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError("unknown config keys", {"keys": unknown})

        base_dir = Path(base_dir) if base_dir is not None else Path(".")
        values = {}
        for name in known:
            if name not in data:
                continue
            if not isinstance(data[name], str) or not data[name]:
                raise ConfigError(f"{name} must be a non-empty string")
            path = Path(data[name]).expanduser()
            values[name] = path if path.is_absolute() else base_dir / path

        return cls(**values)

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "LedgerConfig":
        """
        Load an explicit config file, or mintledger.yaml from the working
        directory if present, or fall back to defaults.
        """
        if config_file is not None:
            return cls.from_yaml(config_file)
        default = Path(DEFAULT_CONFIG_FILE)
        if default.exists():
            return cls.from_yaml(default)
        return cls()

    def key_path(self, name: str) -> Path:
        return self.key_dir / f"{name}.pem"
