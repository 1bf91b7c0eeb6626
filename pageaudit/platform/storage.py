import os
import shutil
from pathlib import Path
from typing import List, Optional

from pageaudit.platform.config import settings
from pageaudit.platform.logger import get_logger

logger = get_logger(__name__)


class LocalObjectStorage:
    """
    Object storage on the local filesystem.

    Paths are relative to the storage root; bytes are stored as given.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.OBJECT_STORAGE_ROOT).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if self.root not in target.parents and target != self.root:
            raise ValueError(f"Path escapes storage root: {path}")
        return target

    def write(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_bytes(data)
        os.replace(tmp, target)
        logger.debug(f"Stored {len(data)} bytes at {path}")
        return str(target)

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def list_prefixes(self) -> List[str]:
        """Top-level directories, one per analysis."""
        if not self.root.is_dir():
            return []
        return sorted(entry.name for entry in self.root.iterdir() if entry.is_dir())

    def delete_prefix(self, prefix: str) -> bool:
        target = self._resolve(prefix)
        if target == self.root or not target.is_dir():
            return False
        shutil.rmtree(target)
        logger.debug(f"Removed {prefix}/")
        return True
