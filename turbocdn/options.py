"""Download options, their validation, and ready-made presets."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

KIB = 1024
MIB = 1024 * 1024

MAX_CHUNKS = 64
MIN_CHUNK_SIZE = 1 * KIB
MAX_CHUNK_SIZE = 32 * MIB
MIN_TIMEOUT = 5
MAX_TIMEOUT = 3600

DEFAULT_ENV_CHUNKS = 4
DEFAULT_ENV_CHUNK_SIZE = 1 * MIB
DEFAULT_ENV_TIMEOUT = 60.0

_UNSIGNED = re.compile(r"\+?[0-9]+")


class InvalidOptionsError(ValueError):
    """Raised when download options fall outside the accepted bounds."""


@dataclass
class DownloadOptions:
    """Per-download settings; ``timeout_override`` is in seconds."""

    max_concurrent_chunks: Optional[int] = None
    chunk_size: Optional[int] = None
    enable_resume: bool = True
    custom_headers: Optional[dict[str, str]] = None
    timeout_override: Optional[float] = None
    verify_integrity: bool = False
    expected_size: Optional[int] = None
    progress_callback: Optional[Callable[..., None]] = None


def validate_download_options(options: DownloadOptions) -> None:
    """Raise InvalidOptionsError if chunk count, chunk size or timeout is out of bounds."""
    chunks = options.max_concurrent_chunks
    if chunks is not None:
        if chunks == 0:
            raise InvalidOptionsError("max_concurrent_chunks must be greater than 0")
        if chunks > MAX_CHUNKS:
            raise InvalidOptionsError(
                "max_concurrent_chunks should not exceed 64 for most use cases"
            )

    chunk_size = options.chunk_size
    if chunk_size is not None:
        if chunk_size < MIN_CHUNK_SIZE:
            raise InvalidOptionsError("chunk_size should be at least 1KB")
        if chunk_size > MAX_CHUNK_SIZE:
            raise InvalidOptionsError("chunk_size should not exceed 32MB")

    timeout = options.timeout_override
    if timeout is not None:
        whole_seconds = int(timeout)
        if whole_seconds < MIN_TIMEOUT:
            raise InvalidOptionsError("timeout should be at least 5 seconds")
        if whole_seconds > MAX_TIMEOUT:
            raise InvalidOptionsError("timeout should not exceed 1 hour")


def _parse_unsigned(value: Optional[str]) -> Optional[int]:
    if value is None or not _UNSIGNED.fullmatch(value):
        return None
    return int(value)


def environment_options(environ: Optional[Mapping[str, str]] = None) -> DownloadOptions:
    """Options read from TURBO_CDN_MAX_CHUNKS, TURBO_CDN_CHUNK_SIZE and TURBO_CDN_TIMEOUT.

    Missing or unparsable values fall back to 4 chunks, 1 MiB and 60 seconds.
    """
    env = os.environ if environ is None else environ

    chunks = _parse_unsigned(env.get("TURBO_CDN_MAX_CHUNKS"))
    chunk_size = _parse_unsigned(env.get("TURBO_CDN_CHUNK_SIZE"))
    timeout = _parse_unsigned(env.get("TURBO_CDN_TIMEOUT"))

    return DownloadOptions(
        max_concurrent_chunks=DEFAULT_ENV_CHUNKS if chunks is None else chunks,
        chunk_size=DEFAULT_ENV_CHUNK_SIZE if chunk_size is None else chunk_size,
        enable_resume=True,
        timeout_override=DEFAULT_ENV_TIMEOUT if timeout is None else float(timeout),
        verify_integrity=True,
    )


def file_type_configurations() -> dict[str, DownloadOptions]:
    """Presets tuned for large binaries, source archives and small tools."""
    return {
        "Large Binary": DownloadOptions(
            max_concurrent_chunks=16,
            chunk_size=8 * MIB,
            enable_resume=True,
            timeout_override=600.0,
            verify_integrity=False,
        ),
        "Source Code": DownloadOptions(
            max_concurrent_chunks=4,
            chunk_size=1 * MIB,
            enable_resume=True,
            timeout_override=120.0,
            verify_integrity=True,
        ),
        "Small Tools": DownloadOptions(
            max_concurrent_chunks=2,
            chunk_size=256 * KIB,
            enable_resume=False,
            timeout_override=30.0,
            verify_integrity=True,
        ),
    }


def network_adaptive_options(bandwidth_mbps: float = 50.0) -> DownloadOptions:
    """Options scaled to a connection speed given in megabits per second."""
    if bandwidth_mbps > 100.0:
        chunks, chunk_size = 16, 4 * MIB
    elif bandwidth_mbps > 25.0:
        chunks, chunk_size = 8, 2 * MIB
    else:
        chunks, chunk_size = 4, 1 * MIB

    return DownloadOptions(
        max_concurrent_chunks=chunks,
        chunk_size=chunk_size,
        enable_resume=True,
        timeout_override=120.0,
        verify_integrity=True,
    )


def valid_options() -> DownloadOptions:
    """A moderate, valid configuration."""
    return DownloadOptions(
        max_concurrent_chunks=4,
        chunk_size=1 * MIB,
        enable_resume=True,
        timeout_override=60.0,
        verify_integrity=True,
    )


def high_performance_options() -> DownloadOptions:
    """Aggressive chunking with large chunks and no integrity check."""
    return DownloadOptions(
        max_concurrent_chunks=32,
        chunk_size=16 * MIB,
        enable_resume=True,
        timeout_override=300.0,
        verify_integrity=False,
    )


def low_bandwidth_options() -> DownloadOptions:
    """A single connection with small chunks and a long timeout."""
    return DownloadOptions(
        max_concurrent_chunks=1,
        chunk_size=128 * KIB,
        enable_resume=True,
        timeout_override=180.0,
        verify_integrity=True,
    )