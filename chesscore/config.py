"""Engine and server settings.

Settings are plain dataclasses; ``from_env`` overlays ``CHESSCORE_*``
environment variables on the defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


# ~16,384 entries per MiB (~64 bytes/entry)
ENTRIES_PER_MB = 16384


def entries_from_hash_mb(mb: int) -> int:
    """Convert a table size in MiB into an entry capacity (minimum 1 MiB)."""
    mb = max(1, int(mb))
    return mb * ENTRIES_PER_MB


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class SearchConfig:
    max_depth: int = 4
    time_limit_ms: Optional[int] = None  # None means depth-only
    hash_mb: int = 16
    tt_entries: Optional[int] = None  # overrides hash_mb when set
    time_check_interval: int = 128  # nodes between deadline samples
    use_tt: bool = True
    pruning: bool = True  # False: examine every sibling (reference search)
    quiescence: bool = False
    # True: each analyze() starts from an empty table.
    # False: entries persist across analyze() calls on the same engine.
    clear_tt_between_searches: bool = True
    verify_unmake: bool = False

    @property
    def tt_capacity(self) -> int:
        if self.tt_entries is not None:
            return max(1, self.tt_entries)
        return entries_from_hash_mb(self.hash_mb)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SearchConfig":
        env = os.environ if env is None else env
        base = cls()
        return cls(
            max_depth=_env_int(env, "CHESSCORE_MAX_DEPTH", base.max_depth) or base.max_depth,
            time_limit_ms=_env_int(env, "CHESSCORE_TIME_LIMIT_MS", base.time_limit_ms),
            hash_mb=_env_int(env, "CHESSCORE_HASH_MB", base.hash_mb) or base.hash_mb,
            tt_entries=_env_int(env, "CHESSCORE_TT_ENTRIES", base.tt_entries),
            time_check_interval=_env_int(
                env, "CHESSCORE_TIME_CHECK_INTERVAL", base.time_check_interval
            )
            or base.time_check_interval,
            use_tt=_env_bool(env, "CHESSCORE_USE_TT", base.use_tt),
            pruning=_env_bool(env, "CHESSCORE_PRUNING", base.pruning),
            quiescence=_env_bool(env, "CHESSCORE_QUIESCENCE", base.quiescence),
            clear_tt_between_searches=_env_bool(
                env, "CHESSCORE_CLEAR_TT", base.clear_tt_between_searches
            ),
            verify_unmake=_env_bool(env, "CHESSCORE_VERIFY_UNMAKE", base.verify_unmake),
        )


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    max_depth: int = 8  # cap on client-requested depth
    max_time_limit_ms: int = 30_000  # cap on client-requested time limit

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if env is None else env
        base = cls()
        return cls(
            host=env.get("CHESSCORE_HOST", base.host),
            port=_env_int(env, "CHESSCORE_PORT", base.port) or base.port,
            log_level=env.get("CHESSCORE_LOG_LEVEL", base.log_level).upper(),
            max_depth=_env_int(env, "CHESSCORE_SERVER_MAX_DEPTH", base.max_depth)
            or base.max_depth,
            max_time_limit_ms=_env_int(
                env, "CHESSCORE_SERVER_MAX_TIME_LIMIT_MS", base.max_time_limit_ms
            )
            or base.max_time_limit_ms,
        )
