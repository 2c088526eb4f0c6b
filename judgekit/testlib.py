"""Download testlib.h, the header checkers, validators and generators include."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from judgekit.config import DEFAULT_TESTLIB_URL
from judgekit.errors import InfrastructureError

logger = logging.getLogger(__name__)


def download_testlib(dest_dir: str | Path, url: str = DEFAULT_TESTLIB_URL, timeout: float = 30.0) -> Path:
    dest = Path(dest_dir) / "testlib.h"
    try:
        resp = httpx.get(url, follow_redirects=True, timeout=timeout)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise InfrastructureError(f"Failed to download testlib.h from {url}: {e}") from e

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(resp.content)
    except OSError as e:
        raise InfrastructureError(f"Cannot write {dest}: {e}") from e
    logger.info("Downloaded testlib.h (%d bytes) to %s", len(resp.content), dest)
    return dest
