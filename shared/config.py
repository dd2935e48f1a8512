"""
PEInfo Configuration Management
================================

Centralized configuration using Python dataclasses and TOML-based
persistence.  Every key is optional: a missing file or a missing key
falls back to the dataclass defaults.

Example ``config.toml``::

    [global]
    log_level = "DEBUG"
    log_file = "logs/peinfo.log"
    log_json = true

    [peinfo]
    list_sections = true
    max_file_size = 104857600

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


# ========================== Section Configs ================================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Logging settings shared by every command."""

    log_level: str = "INFO"
    log_file: str = ""  # empty disables file logging
    log_json: bool = False


@dataclass(frozen=False, slots=True)
class AnalysisConfig:
    """Defaults for a PE analysis run.

    The three ``list_*`` switches select the operations performed when
    the command line does not request any explicitly.
    """

    list_sections: bool = False
    list_imports: bool = False
    list_exports: bool = False
    max_file_size: int = 268_435_456  # 256 MiB
    json_indent: int = 2


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class PEInfoConfig:
    """Master configuration.

    Usage:
        >>> config = PEInfoConfig.load()                  # from default path
        >>> config = PEInfoConfig.load("custom.toml")     # from custom path
        >>> config.peinfo.max_file_size
        268435456
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    peinfo: AnalysisConfig = field(default_factory=AnalysisConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> PEInfoConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root and silently uses defaults when it is absent.

        Raises:
            FileNotFoundError: If *path* was given explicitly and does
                not exist.
            tomllib.TOMLDecodeError: If the file is not valid TOML.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            peinfo=cls._build_section(AnalysisConfig, raw.get("peinfo", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the configuration tree to a plain dictionary."""
        return asdict(self)

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate dataclass *cls* from the keys it declares.

        Unknown keys are ignored so newer config files keep loading.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


def get_config(path: str | Path | None = None) -> PEInfoConfig:
    """Load the configuration once and return the cached instance.

    Passing *path* always reloads.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = PEInfoConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
