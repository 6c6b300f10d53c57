"""Single-line text codec for records.

A record is one comma separated line. A field is wrapped in double quotes
(with inner quotes doubled) when its text holds a comma, a quote or a line
break. Decoding walks the line character by character so that quoted
commas never split a field.

Schemas are versioned: every kind declares its layouts oldest first, and a
row is decoded with the newest layout it has enough columns for. Columns a
row does not carry fall back to the default declared on the field.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import DecodeError, EncodeError, InvalidRecord

logger = logging.getLogger(__name__)

DELIMITER = ','
QUOTE = '"'
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# Accepted on read only; files written by older builds used some of these.
_TIMESTAMP_FORMATS = (
    TIMESTAMP_FORMAT,
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
    '%d.%m.%Y %H:%M:%S',
    '%d.%m.%Y %H:%M',
    '%d.%m.%Y',
)
_TRUE = ('true', '1', 'yes', 'ja')
_FALSE = ('false', '0', 'no', 'nein', '')


@dataclass(frozen=True)
class FieldSpec:
    attr: str
    column: str
    kind: str = 'str'
    default: Any = ''
    identity: bool = False


@dataclass(frozen=True)
class Schema:
    version: int
    fields: Tuple[FieldSpec, ...]
    required: int
    upgrade: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(f.column for f in self.fields)


def escape_field(value: str) -> str:
    text = value or ''
    if any(ch in text for ch in (DELIMITER, QUOTE, '\n', '\r')):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def _scan(line: str) -> Tuple[List[str], bool]:
    """Split ``line`` into fields and report whether it ends inside a quoted field.

    A quote only opens a quoted field when it is the first character of the
    field. A quote anywhere else is kept as a literal character, so a stray
    quote in a hand-edited row cannot swallow the rows after it.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    field_start = True
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < n and line[i + 1] == QUOTE:
                    current.append(QUOTE)
                    i += 2
                    continue
                in_quotes = False
            else:
                current.append(ch)
        elif ch == QUOTE and field_start:
            in_quotes = True
        elif ch == DELIMITER:
            fields.append(''.join(current))
            current = []
            field_start = True
            i += 1
            continue
        else:
            current.append(ch)
        field_start = False
        i += 1
    fields.append(''.join(current))
    return fields, in_quotes


def split_line(line: str) -> List[str]:
    return _scan(line)[0]


def has_open_quote(text: str) -> bool:
    """True if ``text`` ends inside a quoted field (the record continues on the next line)."""
    return _scan(text)[1]


def header_line(schema: Schema) -> str:
    return DELIMITER.join(schema.columns)


def check_timespan(value: timedelta) -> None:
    """Raise ValueError unless ``value`` is a non-negative whole number of minutes."""
    if value < timedelta(0):
        raise ValueError('negative time span')
    if value % timedelta(minutes=1):
        raise ValueError(f'time span {value} is not a whole number of minutes')


def render_value(value: Any, kind: str) -> str:
    if value is None:
        return ''
    if kind == 'bool':
        if not isinstance(value, bool):
            raise TypeError(f'expected bool, got {type(value).__name__}')
        return 'true' if value else 'false'
    if kind == 'int':
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f'expected int, got {type(value).__name__}')
        return str(value)
    if kind == 'datetime':
        return value.strftime(TIMESTAMP_FORMAT)
    if kind == 'timespan':
        check_timespan(value)
        hours, rest = divmod(int(value.total_seconds()), 3600)
        return f'{hours:02d}:{rest // 60:02d}'
    if not isinstance(value, str):
        raise TypeError(f'expected str, got {type(value).__name__}')
    return value


def parse_value(text: str, kind: str) -> Any:
    """Parse one column. Raises ValueError if ``text`` is not valid for ``kind``."""
    if kind == 'str':
        return text
    stripped = text.strip()
    if kind == 'int':
        return int(stripped)
    if kind == 'bool':
        lowered = stripped.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f'not a boolean: {text!r}')
    if kind == 'datetime':
        if not stripped:
            return None
        for fmt in _TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(stripped, fmt)
            except ValueError:
                continue
        raise ValueError(f'not a timestamp: {text!r}')
    if kind == 'timespan':
        if not stripped:
            return None
        parts = stripped.split(':')
        if len(parts) not in (2, 3):
            raise ValueError(f'not a time span: {text!r}')
        hours, minutes = int(parts[0]), int(parts[1])
        seconds = int(parts[2]) if len(parts) == 3 else 0
        # stored as HH:mm; a seconds part is only accepted when it is zero
        if hours < 0 or not 0 <= minutes < 60 or seconds != 0:
            raise ValueError(f'not a time span: {text!r}')
        return timedelta(hours=hours, minutes=minutes, seconds=seconds)
    raise ValueError(f'unknown field kind {kind!r}')


def encode_line(record: Any, schema: Schema) -> str:
    cells = []
    for spec in schema.fields:
        try:
            text = render_value(getattr(record, spec.attr), spec.kind)
        except (AttributeError, TypeError, ValueError) as exc:
            raise EncodeError(f'cannot encode {spec.column}: {exc}') from exc
        cells.append(escape_field(text))
    return DELIMITER.join(cells)


def select_schema(schemas: Sequence[Schema], column_count: int,
                  version: Optional[int] = None) -> Optional[Schema]:
    for schema in reversed(schemas):
        if version is not None and schema.version > version:
            continue
        if column_count >= schema.required:
            return schema
    return None


def decode_line(line: str, kind: Any, version: Optional[int] = None,
                line_number: int = 0) -> Tuple[Any, Schema]:
    values = split_line(line)
    schema = select_schema(kind.schemas, len(values), version)
    if schema is None:
        minimum = min(s.required for s in kind.schemas)
        raise DecodeError(f'expected at least {minimum} columns, got {len(values)}', line_number)

    data: Dict[str, Any] = {}
    for index, spec in enumerate(schema.fields):
        if index >= len(values):
            data[spec.attr] = spec.default
            continue
        try:
            data[spec.attr] = parse_value(values[index], spec.kind)
        except ValueError:
            if spec.identity:
                raise DecodeError(f'invalid {spec.column} {values[index]!r}', line_number)
            logger.debug('line %d: bad %s %r, using default', line_number, spec.column, values[index])
            data[spec.attr] = spec.default
        if spec.identity and data[spec.attr] <= 0:
            raise DecodeError(f'{spec.column} must be positive, got {data[spec.attr]}', line_number)

    if schema.upgrade is not None:
        data = schema.upgrade(data)
    return kind.record_type(**data), schema


def record_to_dict(record: Any, schema: Schema) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for spec in schema.fields:
        value = getattr(record, spec.attr)
        if spec.kind in ('datetime', 'timespan'):
            out[spec.attr] = render_value(value, spec.kind) if value is not None else None
        else:
            out[spec.attr] = value
    return out


def record_from_dict(data: Dict[str, Any], kind: Any) -> Any:
    """Build a record from JSON-ish values; unknown keys are ignored, missing ones take dataclass defaults."""
    values: Dict[str, Any] = {}
    for spec in kind.schema.fields:
        if spec.attr not in data:
            continue
        raw = data[spec.attr]
        try:
            if raw is None:
                values[spec.attr] = None if spec.kind in ('datetime', 'timespan') else spec.default
            elif spec.kind == 'bool' and isinstance(raw, bool):
                values[spec.attr] = raw
            elif spec.kind == 'int' and isinstance(raw, int) and not isinstance(raw, bool):
                values[spec.attr] = raw
            else:
                values[spec.attr] = parse_value(str(raw), spec.kind)
        except ValueError as exc:
            raise InvalidRecord(f'{spec.attr}: {exc}') from exc
    return kind.record_type(**values)


__all__ = [
    'DELIMITER',
    'FieldSpec',
    'Schema',
    'escape_field',
    'split_line',
    'has_open_quote',
    'check_timespan',
    'header_line',
    'render_value',
    'parse_value',
    'encode_line',
    'decode_line',
    'select_schema',
    'record_to_dict',
    'record_from_dict',
]
