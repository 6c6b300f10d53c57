from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .errors import IdentityConflict, InvalidRecord, RecordNotFound
from .models import RecordKind


class RecordTable:
    """In-memory records of one kind keyed by identity, always iterated in identity order."""

    def __init__(self, kind: RecordKind, records: Iterable[Any] = ()):
        self.kind = kind
        self._records: Dict[int, Any] = {}
        for record in records:
            self.insert(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: int) -> bool:
        return identity in self._records

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())

    def all(self) -> List[Any]:
        return [self._records[key] for key in sorted(self._records)]

    def identities(self) -> List[int]:
        return sorted(self._records)

    def find(self, identity: int) -> Optional[Any]:
        return self._records.get(identity)

    def get(self, identity: int) -> Any:
        try:
            return self._records[identity]
        except KeyError:
            raise RecordNotFound(identity) from None

    def _checked_identity(self, record: Any) -> int:
        self.kind.check(record)
        identity = self.kind.identity_of(record)
        if identity <= 0:
            raise InvalidRecord(f'{self.kind.identity_field} must be assigned before storing')
        return identity

    def insert(self, record: Any) -> None:
        identity = self._checked_identity(record)
        if identity in self._records:
            raise IdentityConflict(identity)
        self._records[identity] = record

    def upsert(self, record: Any) -> bool:
        """Store ``record``, replacing any record with the same identity. Returns True on replace."""
        identity = self._checked_identity(record)
        replaced = identity in self._records
        self._records[identity] = record
        return replaced

    def delete(self, identity: int) -> bool:
        return self._records.pop(identity, None) is not None

    def clear(self) -> None:
        self._records.clear()

    def next_identity(self) -> int:
        if not self._records:
            return self.kind.identity_floor
        return max(self._records) + 1

    def copy(self) -> 'RecordTable':
        return RecordTable(self.kind, (replace(r) for r in self.all()))


__all__ = ['RecordTable']
