"""Serialized read-modify-write access to one record store.

Every mutation runs under one lock per store. Inside the lock the table is
reloaded from disk, the change is applied, and the file is replaced
atomically. Two callers saving at the same time therefore run one after
the other and neither overwrites the other's change.

Readers that can live with slightly stale data use the cached table
without taking the lock. The cache is only ever swapped for a new table
after a successful save, never mutated in place, so a reader never sees a
half-applied change.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from .errors import FolderConflict, IdentityConflict, StoreIOError
from .folders import FolderManager, Relocation
from .store import DurableStore
from .table import RecordTable

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class SaveResult:
    record: Any
    created: bool
    warnings: List[FolderConflict] = field(default_factory=list)


class StoreGuard:
    def __init__(self, store: DurableStore, folders: Optional[FolderManager] = None):
        self.store = store
        self.kind = store.kind
        self.folders = folders
        self._lock = threading.Lock()
        self._cache: Optional[RecordTable] = None

    def initialize(self) -> None:
        """Materialize a header-only file if needed and warm the cache."""
        with self._lock:
            if self.store.ensure_exists():
                logger.info('created empty %s store at %s', self.kind.name, self.store.path)
            self._cache = self.store.load()

    # -- reads ---------------------------------------------------------------

    def all(self, fresh: bool = False) -> List[Any]:
        table = self._fresh_table() if fresh else self._cached_table()
        return [replace(r) for r in table.all()]

    def get(self, identity: int, fresh: bool = False) -> Any:
        table = self._fresh_table() if fresh else self._cached_table()
        return replace(table.get(identity))

    def next_identity(self) -> int:
        return self._fresh_table().next_identity()

    def _cached_table(self) -> RecordTable:
        table = self._cache
        if table is None:
            with self._lock:
                if self._cache is None:
                    self._cache = self.store.load()
                table = self._cache
        return table

    def _fresh_table(self) -> RecordTable:
        with self._lock:
            table = self.store.load()
            self._cache = table
            return table

    # -- writes --------------------------------------------------------------

    def with_exclusive(self, fn: Callable[[RecordTable], T]) -> T:
        """Run ``fn`` on a freshly loaded table under the lock, then persist the table.

        ``fn`` mutates the table it is given and returns the call's result.
        If ``fn`` or the save raises, nothing is written and the cache keeps
        its previous value.
        """
        return self._exclusive(fn, [], [])

    def _exclusive(self, fn: Callable[[RecordTable], T],
                   rollback: List[Callable[[], Any]],
                   on_commit: List[Callable[[], Any]]) -> T:
        with self._lock:
            try:
                table = self.store.load()
                result = fn(table)
                self.store.save(table)
            except BaseException:
                for undo in reversed(rollback):
                    try:
                        undo()
                    except OSError:
                        logger.exception('rollback step failed for %s store', self.kind.name)
                raise
            self._cache = table
            for step in on_commit:
                step()
            return result

    def add(self, record: Any) -> SaveResult:
        """Insert a new record. An explicit identity that is already taken raises IdentityConflict."""
        return self._persist(record, insert=True)

    def add_or_update(self, record: Any) -> SaveResult:
        """Insert ``record`` or replace the stored record with the same identity."""
        return self._persist(record, insert=False)

    def delete(self, identity: int) -> bool:
        """Remove a record. Its folder stays on disk."""
        deleted = self.with_exclusive(lambda table: table.delete(identity))
        if deleted:
            logger.info('deleted %s %d', self.kind.name, identity)
        return deleted

    def save_all(self, records: Iterable[Any]) -> List[Any]:
        """Replace the whole table with ``records``, numbering those without an identity."""
        incoming = []
        for record in records:
            self.kind.check(record)
            incoming.append(replace(record))

        def apply(table: RecordTable) -> List[Any]:
            table.clear()
            unnumbered = []
            for record in incoming:
                if self.kind.identity_of(record) == 0:
                    unnumbered.append(record)
                else:
                    table.insert(record)
            for record in unnumbered:
                table.insert(self.kind.with_identity(record, table.next_identity()))
            return [replace(r) for r in table.all()]

        return self.with_exclusive(apply)

    def _persist(self, record: Any, insert: bool) -> SaveResult:
        self.kind.check(record)
        candidate = replace(record)
        warnings: List[FolderConflict] = []
        rollback: List[Callable[[], Any]] = []
        on_commit: List[Callable[[], Any]] = []
        saved = {}

        def apply(table: RecordTable) -> bool:
            current = candidate
            identity = self.kind.identity_of(current)
            if identity == 0:
                current = self.kind.with_identity(current, table.next_identity())
            elif insert and identity in table:
                raise IdentityConflict(identity)
            previous = table.find(self.kind.identity_of(current))
            if self.folders is not None:
                try:
                    current = self._place_folder(current, previous, warnings, rollback)
                except OSError as exc:
                    raise StoreIOError(f'cannot prepare folder for {self.kind.name} '
                                       f'{self.kind.identity_of(current)}: {exc}') from exc
                if previous is not None:
                    on_commit.append(lambda: self._refresh_info(current))
            table.upsert(current)
            saved['record'] = current
            return previous is None

        created = self._exclusive(apply, rollback, on_commit)
        return SaveResult(replace(saved['record']), created, warnings)

    # -- folders -------------------------------------------------------------

    def ensure_folder(self, identity: int) -> Path:
        """Make sure the stored record's folder exists and return its path."""
        if self.folders is None:
            raise RuntimeError(f'{self.kind.name} store has no folder manager')
        with self._lock:
            record = self.store.load().get(identity)
            try:
                return self.folders.ensure_created(record)
            except OSError as exc:
                raise StoreIOError(f'cannot create folder for {self.kind.name} {identity}: {exc}') from exc

    def _place_folder(self, record: Any, previous: Optional[Any],
                      warnings: List[FolderConflict],
                      rollback: List[Callable[[], Any]]) -> Any:
        identity = self.kind.identity_of(record)
        target = self.folders.canonical_path(record)
        old_canonical = self.folders.canonical_path(previous) if previous is not None else None
        stored = record.folder_path or (previous.folder_path if previous is not None else '')

        if stored and Path(stored).is_dir() and Path(stored) not in (target, old_canonical):
            conflict = FolderConflict(identity, stored, str(target), 'non-canonical')
            logger.warning('%s %d: %s', self.kind.name, identity, conflict.describe())
            warnings.append(conflict)
            return replace(record, folder_path=stored)

        if old_canonical is not None and old_canonical != target and old_canonical.is_dir():
            outcome = self.folders.relocate_if_needed(old_canonical, target)
            if outcome is Relocation.CONFLICT:
                conflict = FolderConflict(identity, str(old_canonical), str(target))
                warnings.append(conflict)
                return replace(record, folder_path=str(old_canonical))
            if outcome is Relocation.MOVED:
                rollback.append(lambda: self.folders.relocate_if_needed(target, old_canonical))

        path = self.folders.ensure_created(record)
        return replace(record, folder_path=str(path))

    def _refresh_info(self, record: Any) -> None:
        try:
            self.folders.refresh_info(record, Path(record.folder_path))
        except OSError as exc:
            logger.warning('could not update info file for %s %d: %s',
                           self.kind.name, self.kind.identity_of(record), exc)


__all__ = ['StoreGuard', 'SaveResult']
