import re
from datetime import datetime

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_folder_name(name: str) -> str:
    """Return ``name`` safe for use as one path component on any platform."""
    cleaned = _INVALID_NAME_CHARS.sub('', (name or '').strip().replace(' ', '_'))
    cleaned = cleaned.strip('.')
    return cleaned or 'Unknown'


def now_seconds() -> datetime:
    """Current local time truncated to whole seconds, the precision stored on disk."""
    return datetime.now().replace(microsecond=0)


def yes_no(flag: bool) -> str:
    return 'Ja' if flag else 'Nein'
