"""
Filesystem blob store: one file per cache key inside a directory.
"""
import os
import tempfile
from typing import Any, Dict, List

from errors import CacheStoreError


class FileBlobStore:
    """Directory-backed store implementing exists/read/write/remove.

    Keys are used as file names, so they must not contain path separators.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        os.makedirs(self.path, exist_ok=True)

    def _file(self, key: str) -> str:
        if not key or os.sep in key or (os.altsep and os.altsep in key) or key in ('.', '..'):
            raise CacheStoreError(f"Invalid cache key for file store: {key!r}")
        return os.path.join(self.path, key)

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._file(key))

    def read(self, key: str) -> bytes:
        with open(self._file(key), 'rb') as fh:
            return fh.read()

    def write(self, key: str, data: bytes):
        target = self._file(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.path, prefix='.tmp-')
        try:
            with os.fdopen(fd, 'wb') as fh:
                fh.write(data)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove(self, key: str) -> int:
        target = self._file(key)
        if not os.path.isfile(target):
            return 0
        os.remove(target)
        return 1

    def list_keys(self, limit: int = 1000) -> List[Dict[str, Any]]:
        """Return stored keys with size and modification time, newest first."""
        items = []
        for name in os.listdir(self.path):
            full = os.path.join(self.path, name)
            if name.startswith('.tmp-') or not os.path.isfile(full):
                continue
            st = os.stat(full)
            items.append({'key': name, 'size': st.st_size, 'timestamp': st.st_mtime})
        items.sort(key=lambda it: it['timestamp'], reverse=True)
        return items[:limit]

    def stats(self) -> Dict[str, Any]:
        items = self.list_keys(limit=2 ** 31)
        stamps = [it['timestamp'] for it in items]
        return {'count': len(items), 'oldest': min(stamps) if stamps else None, 'newest': max(stamps) if stamps else None}

    def clear(self):
        for it in self.list_keys(limit=2 ** 31):
            os.remove(os.path.join(self.path, it['key']))

    def close(self):
        """Nothing to release; files are opened per operation."""


__all__ = ["FileBlobStore"]
