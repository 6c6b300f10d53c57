from dataclasses import dataclass


class StoreError(Exception):
    """Base class for every error raised by the record store."""


class DecodeError(StoreError):
    """A single row could not be decoded; the row is skipped."""

    def __init__(self, reason: str, line_number: int = 0):
        self.reason = reason
        self.line_number = line_number
        where = f'line {line_number}: ' if line_number else ''
        super().__init__(f'{where}{reason}')


class EncodeError(StoreError):
    pass


class StoreIOError(StoreError):
    """The backing file could not be read or written."""


class ReplaceFailed(StoreError):
    """The atomic replace of the backing file failed; the original is untouched."""


class InvalidRecord(StoreError, ValueError):
    pass


class IdentityConflict(StoreError):
    def __init__(self, identity: int):
        self.identity = identity
        super().__init__(f'identity {identity} already exists')


class RecordNotFound(StoreError, KeyError):
    def __init__(self, identity: int):
        self.identity = identity
        super().__init__(f'no record with identity {identity}')

    def __str__(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class FolderConflict:
    """Warning value: a folder could not be moved to its canonical location."""

    identity: int
    current: str
    target: str
    reason: str = 'occupied'

    def describe(self) -> str:
        if self.reason == 'non-canonical':
            return f'folder {self.current} does not follow the naming convention; left in place'
        return f'cannot move {self.current} to {self.target}: target already exists'


__all__ = [
    'StoreError',
    'DecodeError',
    'EncodeError',
    'StoreIOError',
    'ReplaceFailed',
    'InvalidRecord',
    'IdentityConflict',
    'RecordNotFound',
    'FolderConflict',
]
