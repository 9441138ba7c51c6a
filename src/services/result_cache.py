"""Content-addressed disk cache for composed map images.

One file per request key: ``{cache_dir}/{sha256}.{ext}``. Files are written
atomically (temp file + rename), so a reader sees either nothing or the whole
image. There is no in-process lock: concurrent writers of the same key produce
equivalent bytes and the last rename wins.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path

from domain.errors import CacheIOError

logger = logging.getLogger(__name__)


def result_key(
    zoom: int,
    lat: float,
    lon: float,
    marker_name: str | None,
    anchor_name: str | None,
    scale: int,
) -> str:
    """
    SHA-256 hex digest of the request fields.

    Fields are serialised as a JSON array, so values cannot run into each
    other and ``None`` stays distinct from an empty string.
    """
    payload = json.dumps(
        [int(zoom), float(lat), float(lon), marker_name, anchor_name, int(scale)],
        separators=(',', ':'),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


class ResultCache:
    """Filesystem store of encoded map images keyed by digest."""

    def __init__(self, cache_dir: str | Path, extension: str = 'png') -> None:
        self.cache_dir = Path(cache_dir)
        self.extension = extension.lstrip('.')
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f'Failed to create cache directory {self.cache_dir}: {e}'
            raise CacheIOError(msg) from e
        logger.info('Result cache at %s (*.%s)', self.cache_dir, self.extension)

    key = staticmethod(result_key)

    def path_for(self, digest: str) -> Path:
        return self.cache_dir / f'{digest}.{self.extension}'

    def exists(self, digest: str) -> bool:
        return self.path_for(digest).is_file()

    def read(self, digest: str) -> bytes:
        path = self.path_for(digest)
        try:
            return path.read_bytes()
        except OSError as e:
            msg = f'Failed to read cached map {path}: {e}'
            raise CacheIOError(msg) from e

    def write(self, digest: str, data: bytes) -> Path:
        """Write ``data`` under ``digest``; returns the final path."""
        path = self.path_for(digest)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.cache_dir, prefix=f'.{digest[:16]}.', suffix='.tmp'
            )
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            msg = f'Failed to write cached map {path}: {e}'
            raise CacheIOError(msg) from e
        logger.debug('Cached map %s (%d bytes)', path.name, len(data))
        return path
