#!/usr/bin/env python3

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from idlkit.errors import ConfigError

CONFIG_FILE_NAME = "idlkit_config.json"

DEFAULT_BUILTINS = [
    "bool",
    "char",
    "u8",
    "u16",
    "u32",
    "u64",
    "usize",
    "i8",
    "i16",
    "i32",
    "i64",
    "isize",
    "Option",
]


class IdlConfig(BaseModel):
    """Configuration for an IDL compilation run."""

    # Canonical path of the wrapper that moves a value across an isolation boundary
    boundary_wrapper: list[str] = Field(
        default_factory=lambda: ["crate", "rref", "rref", "RRef"]
    )

    # Names visible in every module without an import
    builtins: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILTINS))

    # Generated code
    typeid_module: str = "typeid"
    typeid_trait: str = "TypeIdentifiable"

    # Drop map emitted next to the type ids
    drop_map: bool = True
    cleanup_trait: list[str] = Field(
        default_factory=lambda: ["crate", "rref", "traits", "CustomCleanup"]
    )
    drop_map_import: list[str] = Field(default_factory=lambda: ["hashbrown", "HashMap"])

    @field_validator("boundary_wrapper", "cleanup_trait", "drop_map_import")
    @classmethod
    def _path_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("path must name at least one segment")
        return value

    def boundary_wrapper_path(self) -> tuple[str, ...]:
        """Get the wrapper path as a canonical path tuple."""
        return tuple(self.boundary_wrapper)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "IdlConfig":
        """Load configuration from a JSON file."""
        try:
            args = json.loads(config_path.read_text())
            return cls.model_validate(args)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid configuration {config_path}: {e}") from e

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        data = self.model_dump()
        config_path.write_text(json.dumps(data, indent=2))

    @classmethod
    def find_config(cls, start_path: Path) -> Optional["IdlConfig"]:
        """Find configuration by searching up the directory tree."""
        current = start_path.resolve()
        if current.is_file():
            current = current.parent
        while True:
            config_file = current / CONFIG_FILE_NAME
            if config_file.exists():
                return cls.load_from_file(config_file)
            if current == current.parent:
                return None
            current = current.parent
