"""Utilities to download the practice and prescribing source files.

`SourceTarget` pairs a remote URL with the local path the file is cached at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from prescribing_pipeline.errors import SourceUnavailableError, StoreWriteError

log = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class SourceTarget:
    """A source file to download.

    Attributes:
        label: Short name used in log lines (e.g. "ADD").
        url: Remote location, or None when not configured.
        path: Local cache path.
    """
    label: str
    url: str | None
    path: Path


def download_source(target: SourceTarget, force: bool = False) -> Path:
    """Download or return the cached copy of a source file.

    The response body is streamed to disk in chunks so the prescribing file
    is never held in memory.

    Args:
        target: `SourceTarget` naming the URL and the local path.
        force: Re-download even when a non-empty cached copy exists.

    Returns:
        Path to the downloaded (or cached) file.

    Raises:
        SourceUnavailableError: if no URL is configured and nothing is cached,
            or the request fails.
        StoreWriteError: if the local directory or file cannot be written.
    """
    out_path = target.path
    if not force and out_path.exists() and out_path.stat().st_size > 0:
        log.info("Cache hit: %s", out_path)
        return out_path

    if not target.url:
        raise SourceUnavailableError(
            f"No URL configured for the {target.label} file and {out_path} is missing."
        )

    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StoreWriteError(f"Couldn't create a dir for the {target.label} file", path=out_path.parent) from e

    log.info("Downloading the %s file from %s", target.label, target.url)
    import requests  # type: ignore[import-untyped]  # local import to avoid requiring type stubs at module import

    try:
        with requests.get(target.url, stream=True, timeout=60) as r:
            r.raise_for_status()
            with out_path.open("wb") as fh:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    fh.write(chunk)
    except requests.RequestException as e:
        out_path.unlink(missing_ok=True)
        raise SourceUnavailableError(f"Couldn't download the {target.label} file: {e}") from e
    except OSError as e:
        raise StoreWriteError(f"Couldn't save the {target.label} file", path=out_path) from e

    log.info(
        "%s file has been downloaded, its rough size: %d MB",
        target.label,
        out_path.stat().st_size // 1024 // 1024,
    )
    return out_path
