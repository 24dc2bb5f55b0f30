"""Build options and cache file layout."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import ConfigError

PathLike = Union[str, Path]


@dataclass(frozen=True)
class BuildOptions:
    force_rebuild: bool = False
    ifelse_to_event: bool = True
    write_to_file: bool = True


@dataclass(frozen=True)
class ModelPaths:
    """Cache files of one model inside ``dir_julia``."""

    dir_julia: Path
    model_name: str

    @classmethod
    def create(cls, dir_julia: PathLike, model_name: str) -> "ModelPaths":
        if not model_name or not model_name.replace("_", "").isalnum():
            raise ConfigError(f"Model name '{model_name}' must be alphanumeric with underscores")
        directory = Path(dir_julia)
        if directory.exists() and not directory.is_dir():
            raise ConfigError(f"{directory} is not a directory")
        return cls(dir_julia=directory, model_name=model_name)

    @property
    def model_file(self) -> Path:
        return self.dir_julia / f"{self.model_name}.jl"

    @property
    def h_sd_u0_file(self) -> Path:
        return self.dir_julia / f"{self.model_name}_h_sd_u0.jl"

    @property
    def d_h_sd_file(self) -> Path:
        return self.dir_julia / f"{self.model_name}_D_h_sd.jl"

    @property
    def callbacks_file(self) -> Path:
        return self.dir_julia / f"{self.model_name}_callbacks.jl"

    @property
    def fix_file(self) -> Path:
        return self.dir_julia / f"{self.model_name}_fix.jl"


__all__ = ["BuildOptions", "ModelPaths"]
