"""
Local-disk blob store for shared files.

Accepts raw bytes plus a declared MIME type, enforces the MIME allow-list and
the size limit, and returns the public path clients fetch the file from.
"""

import os
import random
import re
import time
from dataclasses import dataclass
from typing import Iterable

from constants import ALLOWED_MIMES, MAX_UPLOAD_BYTES, UPLOAD_DIR
from errors import RejectedType, TooLarge
from logging_config import get_logger

logger = get_logger(__name__)

PUBLIC_PREFIX = "/uploads"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", os.path.basename(name or "")) or "file"


@dataclass
class StoredBlob:
    path: str
    name: str
    mime: str
    size: int


class LocalBlobStore:
    def __init__(self, upload_dir: str = UPLOAD_DIR, max_bytes: int = MAX_UPLOAD_BYTES,
                 allowed_mimes: Iterable[str] = ALLOWED_MIMES):
        self.upload_dir = upload_dir
        self.max_bytes = max_bytes
        self.allowed_mimes = frozenset(allowed_mimes)

    def ensure_dir(self) -> None:
        os.makedirs(self.upload_dir, exist_ok=True)

    def check(self, mime: str, size: int) -> None:
        if mime not in self.allowed_mimes:
            raise RejectedType(mime)
        if size > self.max_bytes:
            raise TooLarge(self.max_bytes)

    def store(self, data: bytes, filename: str, mime: str) -> StoredBlob:
        self.check(mime, len(data))
        self.ensure_dir()

        stored_name = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{sanitize_filename(filename)}"
        with open(os.path.join(self.upload_dir, stored_name), "wb") as f:
            f.write(data)

        logger.info(f"Stored upload '{filename}' as {stored_name} ({len(data)} bytes, {mime})")
        return StoredBlob(path=f"{PUBLIC_PREFIX}/{stored_name}", name=filename, mime=mime, size=len(data))
