"""
Filesystem abstraction used for artifact storage.
OsFilesystem writes under a root directory; MemoryFilesystem keeps bytes in a dict for tests.
"""
import io
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Dict, Optional

ARTIFACT_ROOT = os.getenv("ARTIFACT_ROOT", ".")

# Write-only, create, fail if the file is already there
WRITE_CREATE = os.O_WRONLY | os.O_CREAT | os.O_EXCL
DEFAULT_PERM = 0o644


class Filesystem(ABC):
    """Minimal file storage interface the artifact service writes through"""

    @abstractmethod
    def open(self, path: str, flags: int = WRITE_CREATE, perm: int = DEFAULT_PERM) -> BinaryIO:
        """Open `path` for writing; raises FileExistsError when create is exclusive and the file exists"""

    @abstractmethod
    def remove(self, path: str) -> None:
        ...

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...


class OsFilesystem(Filesystem):
    def __init__(self, root: Optional[str] = None):
        self.root = Path(root if root is not None else ARTIFACT_ROOT)

    def _local_path(self, path: str) -> Path:
        rel = PurePosixPath(path.lstrip("/"))
        if ".." in rel.parts:
            raise ValueError(f"path escapes filesystem root: {path}")
        return self.root / rel

    def open(self, path: str, flags: int = WRITE_CREATE, perm: int = DEFAULT_PERM) -> BinaryIO:
        p = self._local_path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(p, flags, perm)
        return os.fdopen(fd, "wb")

    def remove(self, path: str) -> None:
        try:
            self._local_path(path).unlink()
        except FileNotFoundError:
            pass

    def read_bytes(self, path: str) -> bytes:
        return self._local_path(path).read_bytes()

    def exists(self, path: str) -> bool:
        return self._local_path(path).exists()


class _MemoryFile(io.BytesIO):
    def __init__(self, fs: "MemoryFilesystem", key: str):
        super().__init__()
        self._fs = fs
        self._key = key

    def close(self):
        if not self.closed:
            with self._fs._lock:
                self._fs.store[self._key] = self.getvalue()
        super().close()


class MemoryFilesystem(Filesystem):
    """In-memory filesystem; `fail_on_open` makes every open raise that exception"""

    def __init__(self, fail_on_open: Optional[Exception] = None):
        self.store: Dict[str, bytes] = {}
        self.perms: Dict[str, int] = {}
        self.fail_on_open = fail_on_open
        self.open_calls = 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: str) -> str:
        return str(PurePosixPath(path.lstrip("/")))

    def open(self, path: str, flags: int = WRITE_CREATE, perm: int = DEFAULT_PERM) -> BinaryIO:
        self.open_calls += 1
        if self.fail_on_open is not None:
            raise self.fail_on_open
        key = self._key(path)
        with self._lock:
            if flags & os.O_EXCL and key in self.store:
                raise FileExistsError(path)
            if not flags & os.O_CREAT and key not in self.store:
                raise FileNotFoundError(path)
            # reserve the name so concurrent exclusive opens collide
            self.store.setdefault(key, b"")
            self.perms[key] = perm
        return _MemoryFile(self, key)

    def remove(self, path: str) -> None:
        key = self._key(path)
        with self._lock:
            self.store.pop(key, None)
            self.perms.pop(key, None)

    def read_bytes(self, path: str) -> bytes:
        key = self._key(path)
        if key not in self.store:
            raise FileNotFoundError(path)
        return self.store[key]

    def exists(self, path: str) -> bool:
        return self._key(path) in self.store
