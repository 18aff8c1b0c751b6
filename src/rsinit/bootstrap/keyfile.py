# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/bootstrap/keyfile.py

from __future__ import annotations

import base64
import logging
import os
import secrets
import shutil
import stat
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import StorageError

log = logging.getLogger("rsinit")

KEYFILE_MODE = 0o400
DEFAULT_KEYFILE_BYTES = 756
_LINE_WIDTH = 64


@dataclass(frozen=True)
class SharedSecret:
    """Replica-set key file as found (or created) on disk."""
    path: Path
    content: bytes = field(repr=False)
    created: bool


def generate_key_material(num_bytes: int = DEFAULT_KEYFILE_BYTES) -> bytes:
    """
    Random bytes, base64-encoded and wrapped like `openssl rand -base64`.
    mongod ignores whitespace and accepts at most 1024 base64 characters.
    """
    encoded = base64.b64encode(secrets.token_bytes(num_bytes)).decode("ascii")
    return ("\n".join(textwrap.wrap(encoded, _LINE_WIDTH)) + "\n").encode("ascii")


def _write_exclusive(path: Path, content: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())


def _assert_permissions(path: Path, owner: Optional[str], group: Optional[str]) -> None:
    os.chmod(path, KEYFILE_MODE)
    if owner or group:
        shutil.chown(path, user=owner, group=group)


def ensure_secret(
    path: str | Path,
    *,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    num_bytes: int = DEFAULT_KEYFILE_BYTES,
) -> SharedSecret:
    """
    Make sure the replica-set key file exists with owner-only read access.

    - Missing file: generate, write, chmod 0400, chown owner:group.
    - Existing file: content is never touched, only mode and ownership are
      re-asserted. Regenerating would lock the member out of its own set.
    """
    path = Path(path)
    created = False

    try:
        if not path.exists():
            log.info("Generating replica-set key file at %s", path)
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                _write_exclusive(path, generate_key_material(num_bytes))
                created = True
            except FileExistsError:
                log.info("Key file %s appeared concurrently; keeping it", path)
        else:
            log.info("Key file already exists at %s", path)

        _assert_permissions(path, owner, group)
        content = path.read_bytes()
        mode = stat.S_IMODE(path.stat().st_mode)
    except (OSError, LookupError) as exc:
        # LookupError: unknown user/group name in shutil.chown
        raise StorageError(f"cannot materialize key file {path}: {exc}", phase="keyfile") from exc

    log.debug("key file %s mode=%o owner=%s group=%s", path, mode, owner, group)
    return SharedSecret(path=path, content=content, created=created)
