"""
Configuration for the hivesink.io layer.

Defines WriterSettings, a frozen dataclass carrying runtime configuration for the insert
write path. Defaults are sourced from hivesink.core.constants (the single source of truth).

Source of truth
- hivesink.core.constants.ROOT_DIR, COMPRESSION, ROW_GROUP_SIZE, MAX_WORKERS, WRITE_RETRIES,
  DEFAULT_DATABASE

Import DAG discipline
- Depends only on stdlib and hivesink.core.
- Does not import other hivesink.io modules.

Notes
- Precedence when loading: environment (HIVESINK_*) > TOML > defaults.
- Compression and row group size apply to columnar (Parquet) files only.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from hivesink.core.constants import COMPRESSION as CORE_COMPRESSION
from hivesink.core.constants import DEFAULT_DATABASE as CORE_DEFAULT_DATABASE
from hivesink.core.constants import MAX_WORKERS as CORE_MAX_WORKERS
from hivesink.core.constants import ROOT_DIR as CORE_ROOT_DIR
from hivesink.core.constants import ROW_GROUP_SIZE as CORE_ROW_GROUP_SIZE
from hivesink.core.constants import WRITE_RETRIES as CORE_WRITE_RETRIES
from hivesink.core.errors import ConfigError

Compression = Literal["snappy", "zstd", "gzip", "lz4", "none"]
_COMPRESSIONS = ("snappy", "zstd", "gzip", "lz4", "none")


@dataclass(frozen=True)
class WriterSettings:
    """
    Runtime settings for the insert write path.

    Attributes:
        root_dir (str): Warehouse root; table locations and the file catalog live below it.
        compression (Literal["snappy","zstd","gzip","lz4","none"]): Parquet codec.
        row_group_size (int): Parquet row group size (>= 1).
        max_workers (int): Upper bound of per-partition writer threads (>= 1).
        write_retries (int): Extra attempts per data file on transient OSError (>= 0).
        default_database (str): Database used for unqualified table names.

    Raises:
        ConfigError: If a value is out of range or unsupported.

    Examples:
        >>> from hivesink.io import WriterSettings
        >>> WriterSettings(root_dir="warehouse", max_workers=2)  # doctest: +ELLIPSIS
        WriterSettings(...)
    """

    root_dir: str = CORE_ROOT_DIR
    compression: Compression = CORE_COMPRESSION  # type: ignore[assignment]
    row_group_size: int = CORE_ROW_GROUP_SIZE
    max_workers: int = CORE_MAX_WORKERS
    write_retries: int = CORE_WRITE_RETRIES
    default_database: str = CORE_DEFAULT_DATABASE

    def __post_init__(self) -> None:
        if self.compression not in _COMPRESSIONS:
            raise ConfigError(
                f"compression must be one of {_COMPRESSIONS!r}, got {self.compression!r}"
            )
        if self.row_group_size < 1:
            raise ConfigError(f"row_group_size must be >= 1, got {self.row_group_size}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.write_retries < 0:
            raise ConfigError(f"write_retries must be >= 0, got {self.write_retries}")
        if not self.default_database:
            raise ConfigError("default_database must be non-empty")

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: WriterSettings, cfg: dict[str, Any] | None) -> WriterSettings:
        """Apply a loose config mapping onto WriterSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        def _int(key: str) -> int:
            try:
                return int(cfg[key])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"{key} must be an integer, got {cfg[key]!r}") from exc

        s = base
        if "root_dir" in cfg:
            s = replace(s, root_dir=str(cfg["root_dir"]))
        if "compression" in cfg:
            s = replace(s, compression=str(cfg["compression"]).strip().lower())  # type: ignore[arg-type]
        for key in ("row_group_size", "max_workers", "write_retries"):
            if key in cfg:
                s = replace(s, **{key: _int(key)})
        if "default_database" in cfg:
            s = replace(s, default_database=str(cfg["default_database"]).strip().lower())
        return s

    @classmethod
    def from_env(cls, base: WriterSettings | None = None, prefix: str = "HIVESINK_") -> WriterSettings:
        """
        Build WriterSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - HIVESINK_ROOT_DIR
            - HIVESINK_COMPRESSION ("snappy" | "zstd" | "gzip" | "lz4" | "none")
            - HIVESINK_ROW_GROUP_SIZE
            - HIVESINK_MAX_WORKERS
            - HIVESINK_WRITE_RETRIES
            - HIVESINK_DEFAULT_DATABASE
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in (
            "root_dir",
            "compression",
            "row_group_size",
            "max_workers",
            "write_retries",
            "default_database",
        ):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> WriterSettings:
        """
        Build WriterSettings from a TOML file.

        Search order when `path` is None:
            1) ./hivesink.toml (with either a [writer] table or top-level keys)
            2) ./pyproject.toml under [tool.hivesink.writer]

        Returns defaults if no file is present.
        """
        s = cls()
        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "hivesink.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"invalid TOML in {p}: {exc}") from exc
            if p.name == "pyproject.toml":
                cfg = data.get("tool", {}).get("hivesink", {}).get("writer")
            elif isinstance(data.get("writer"), dict):
                cfg = data["writer"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> WriterSettings:
        """
        Load WriterSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search hivesink.toml then pyproject.toml.
        """
        return cls.from_env(base=cls.from_toml(path))
