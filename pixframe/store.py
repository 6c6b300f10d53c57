"""Loading and atomically saving a record table as a CSV file.

Saving never writes the target in place. The whole table goes to
``<path>.tmp`` next to the target, which is flushed and fsynced and then
swapped in with ``os.replace``. Readers see either the old file or the new
one, and a crash before the swap leaves the old file as it was.

Loading is best effort: a row that cannot be decoded is logged and
skipped, and the rest of the file still loads.
"""
import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .codec import decode_line, encode_line, has_open_quote, header_line, split_line
from .errors import DecodeError, EncodeError, IdentityConflict, ReplaceFailed, StoreIOError
from .models import RecordKind
from .table import RecordTable

logger = logging.getLogger(__name__)

_BOM = '\ufeff'


def _physical_lines(raw: bytes) -> List[Tuple[int, object]]:
    lines: List[Tuple[int, object]] = []
    for number, chunk in enumerate(raw.split(b'\n'), start=1):
        try:
            text = chunk.decode('utf-8')
        except UnicodeDecodeError as exc:
            lines.append((number, DecodeError(f'invalid UTF-8: {exc.reason}', number)))
            continue
        if number == 1 and text.startswith(_BOM):
            text = text[len(_BOM):]
        lines.append((number, text))
    return lines


def _logical_lines(raw: bytes) -> Iterator[Tuple[int, object]]:
    """Yield ``(line_number, text_or_error)`` for each record in ``raw``.

    Physical lines are joined while a quoted field is still open, so a
    field holding a newline stays in one record. A line that is not valid
    UTF-8 yields a DecodeError instead of text. If a quoted field never
    closes, only its first line is reported and the lines after it are
    read again as records of their own.
    """
    lines = _physical_lines(raw)
    i = 0
    while i < len(lines):
        start, item = lines[i]
        if isinstance(item, DecodeError):
            yield start, item
            i += 1
            continue
        pending = [item]
        j = i + 1
        while has_open_quote('\n'.join(pending)) and j < len(lines) and isinstance(lines[j][1], str):
            pending.append(lines[j][1])
            j += 1
        joined = '\n'.join(pending)
        if has_open_quote(joined):
            yield start, DecodeError('unterminated quoted field', start)
            i += 1
            continue
        i = j
        yield start, joined[:-1] if joined.endswith('\r') else joined


def _header_version(line: str, kind: RecordKind, source: str) -> Optional[int]:
    schema = kind.schema_for_header(split_line(line))
    if schema is None:
        logger.warning('%s: unrecognised header, guessing schema per row', source)
        return None
    if schema is not kind.schema:
        logger.info('%s: reading schema v%d, will rewrite as v%d on next save',
                    source, schema.version, kind.schema.version)
    return schema.version


def parse_table(raw: bytes, kind: RecordKind, source: str = '<input>') -> Tuple[RecordTable, List[DecodeError]]:
    """Decode a whole file's bytes. Bad rows are returned as errors, never raised."""
    table = RecordTable(kind)
    errors: List[DecodeError] = []
    version: Optional[int] = None
    seen_header = False
    for number, item in _logical_lines(raw):
        if isinstance(item, DecodeError):
            errors.append(item)
            continue
        if not item.strip():
            continue
        if not seen_header:
            seen_header = True
            version = _header_version(item, kind, source)
            continue
        try:
            record, _ = decode_line(item, kind, version, number)
            table.insert(record)
        except DecodeError as exc:
            errors.append(exc)
        except IdentityConflict as exc:
            errors.append(DecodeError(f'duplicate {kind.identity_field} {exc.identity}', number))

    for err in errors:
        logger.warning('%s: skipped %s', source, err)
    return table, errors


class DurableStore:
    """One CSV file holding every record of one kind."""

    def __init__(self, path, kind: RecordKind):
        self.path = Path(path)
        self.kind = kind

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + '.tmp')

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> RecordTable:
        table, _ = self.load_with_errors()
        return table

    def load_with_errors(self) -> Tuple[RecordTable, List[DecodeError]]:
        try:
            with open(self.path, 'rb') as f:
                raw = f.read()
        except FileNotFoundError:
            return RecordTable(self.kind), []
        except OSError as exc:
            raise StoreIOError(f'cannot read {self.path}: {exc}') from exc
        return parse_table(raw, self.kind, self.path.name)

    def render(self, table: RecordTable) -> str:
        lines = [header_line(self.kind.schema)]
        for record in table.all():
            lines.append(encode_line(record, self.kind.schema))
        return '\n'.join(lines) + '\n'

    def save(self, table: RecordTable) -> None:
        if table.kind is not self.kind:
            raise EncodeError(f'cannot save {table.kind.name} records into a {self.kind.name} store')
        payload = self.render(table).encode('utf-8')

        tmp = self.temp_path
        try:
            os.makedirs(self.path.parent, exist_ok=True)
            with open(tmp, 'wb') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            self._discard(tmp)
            raise StoreIOError(f'cannot write {tmp}: {exc}') from exc

        try:
            os.replace(tmp, self.path)
        except OSError as exc:
            self._discard(tmp)
            raise ReplaceFailed(f'cannot replace {self.path}: {exc}') from exc
        logger.info('saved %d %s record(s) to %s', len(table), self.kind.name, self.path)

    def ensure_exists(self) -> bool:
        """Write a header-only file if none exists yet. Returns True if one was created."""
        if self.path.exists():
            return False
        self.save(RecordTable(self.kind))
        return True

    @staticmethod
    def _discard(tmp: Path) -> None:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning('could not remove temp file %s: %s', tmp, exc)


__all__ = ['DurableStore', 'parse_table']
