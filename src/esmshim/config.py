"""Environment-driven settings.

Read once and cached so the polyfill templates and the CLI agree on the same
values for the life of the process. Tests that change the environment call
``get_settings.cache_clear()``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

AMD_LOADER_ENV = "ESMSHIM_AMD_LOADER"
REGENERATOR_RUNTIME_ENV = "ESMSHIM_REGENERATOR_RUNTIME"
QUERY_PARAM_ENV = "ESMSHIM_QUERY_PARAM"


def _path_or_none(value: str | None) -> Path | None:
    if not value:
        return None
    return Path(value).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    amd_loader_path: Path | None = None
    regenerator_runtime_path: Path | None = None
    query_param: str = ""

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            amd_loader_path=_path_or_none(env.get(AMD_LOADER_ENV)),
            regenerator_runtime_path=_path_or_none(env.get(REGENERATOR_RUNTIME_ENV)),
            query_param=env.get(QUERY_PARAM_ENV, ""),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
