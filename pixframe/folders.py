import enum
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from .config import WorkspaceConfig
from .models import RecordKind
from .utils import now_seconds

logger = logging.getLogger(__name__)


class Relocation(enum.Enum):
    UNCHANGED = 'unchanged'
    MOVED = 'moved'
    MISSING = 'missing'
    CONFLICT = 'conflict'


class FolderManager:
    """Creates and moves the folder tree that mirrors each record on disk.

    Folders are never deleted here; removing a record leaves its folder in
    place.
    """

    def __init__(self, config: WorkspaceConfig, kind: RecordKind):
        self.config = config
        self.kind = kind

    def canonical_path(self, record: Any) -> Path:
        return self.config.customers_path / self.kind.folder_relpath(record)

    def ensure_created(self, record: Any) -> Path:
        """Create the record's folder with its subfolders and info file.

        An existing folder is completed rather than skipped: missing
        subfolders and a missing info file are added, nothing present is
        overwritten. A project folder created first leaves a bare customer
        folder behind, which gets its skeleton this way.
        """
        path = self.canonical_path(record)
        existed = path.is_dir()
        os.makedirs(path, exist_ok=True)
        missing = [name for name in self.kind.subfolders if not (path / name).is_dir()]
        for name in missing:
            os.makedirs(path / name, exist_ok=True)
        wrote_info = not (path / self.kind.info_file).exists()
        if wrote_info:
            self._write_info(path, record, updated=False)
        if not existed:
            logger.info('created %s folder %s', self.kind.name, path)
        elif missing or wrote_info:
            logger.info('completed %s folder %s (%d subfolder(s) added%s)', self.kind.name, path,
                        len(missing), ', info file written' if wrote_info else '')
        return path

    def refresh_info(self, record: Any, path: Optional[Path] = None) -> bool:
        """Rewrite the info file of an existing folder. Returns False if the folder is gone."""
        target = Path(path) if path else self.canonical_path(record)
        if not target.is_dir():
            return False
        self._write_info(target, record, updated=True)
        return True

    def relocate_if_needed(self, old_path, new_path) -> Relocation:
        old, new = Path(old_path), Path(new_path)
        if old == new:
            return Relocation.UNCHANGED
        if not old.is_dir():
            return Relocation.MISSING
        if new.exists():
            logger.warning('not moving %s: %s already exists', old, new)
            return Relocation.CONFLICT
        os.makedirs(new.parent, exist_ok=True)
        shutil.move(str(old), str(new))
        logger.info('moved %s folder %s -> %s', self.kind.name, old, new)
        return Relocation.MOVED

    def _write_info(self, path: Path, record: Any, updated: bool) -> None:
        text = self.kind.render_info(record, now_seconds(), updated)
        with open(path / self.kind.info_file, 'w', encoding='utf-8') as f:
            f.write(text)


__all__ = ['FolderManager', 'Relocation']
