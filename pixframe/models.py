"""Record types, their on-disk schemas and the per-kind settings.

Both kinds share one engine. Everything that differs between customers and
projects (identity field, floor, folder layout, info file) lives in a
``RecordKind`` value instead of a subclass.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import PurePath
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .codec import FieldSpec, Schema, check_timespan
from .errors import InvalidRecord
from .utils import now_seconds, sanitize_folder_name, yes_no


@dataclass
class Customer:
    customer_number: int = 0
    first_name: str = ''
    last_name: str = ''
    company: str = ''
    email: str = ''
    phone: str = ''
    street: str = ''
    house_number: str = ''
    zip_code: str = ''
    city: str = ''
    vat_id: str = ''
    folder_path: str = ''

    @property
    def display_name(self) -> str:
        return f'{self.customer_number} - {self.first_name} {self.last_name} {self.company}'.rstrip()

    @property
    def full_address(self) -> str:
        return f'{self.street} {self.house_number}, {self.zip_code} {self.city}'


@dataclass
class Project:
    project_id: int = 0
    customer_number: int = 0
    project_name: str = ''
    category: str = ''
    created_date: Optional[datetime] = field(default_factory=now_seconds)
    booking: Optional[datetime] = None
    status: str = 'Aktiv'
    folder_path: str = ''
    notes: str = ''
    location: str = ''
    booking_time: Optional[timedelta] = None
    photography: bool = False
    videography: bool = False
    greeting_cards: bool = False
    getting_ready: bool = False
    getting_ready_groom: bool = False
    getting_ready_bride: bool = False
    getting_ready_both: bool = False

    @property
    def getting_ready_for(self) -> str:
        if not self.getting_ready:
            return 'n/a'
        parts = [label for flag, label in (
            (self.getting_ready_groom, 'Er'),
            (self.getting_ready_bride, 'Sie'),
            (self.getting_ready_both, 'Beide'),
        ) if flag]
        return ', '.join(parts) or 'n/a'

    @property
    def booking_info(self) -> str:
        date = self.booking.strftime('%d.%m.%Y') if self.booking else 'Kein Datum'
        time = _clock(self.booking_time)
        return f'{date} {time} - {self.location or "Kein Ort"}'


def _clock(span: Optional[timedelta]) -> str:
    minutes = int(span.total_seconds()) // 60 if span else 0
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


# -- schemas ---------------------------------------------------------------

_CUSTOMER_V1 = (
    FieldSpec('customer_number', 'CustomerNumber', 'int', 0, identity=True),
    FieldSpec('first_name', 'FirstName'),
    FieldSpec('last_name', 'LastName'),
    FieldSpec('company', 'Company'),
    FieldSpec('email', 'Email'),
    FieldSpec('phone', 'Phone'),
    FieldSpec('street', 'Street'),
    FieldSpec('house_number', 'HouseNumber'),
    FieldSpec('zip_code', 'ZipCode'),
    FieldSpec('city', 'City'),
    FieldSpec('vat_id', 'VatId'),
)

CUSTOMER_SCHEMAS = (
    Schema(1, _CUSTOMER_V1, required=11),
    Schema(2, _CUSTOMER_V1 + (FieldSpec('folder_path', 'FolderPath'),), required=12),
)


def _merge_description(values: Dict[str, Any]) -> Dict[str, Any]:
    description = values.pop('description', '')
    notes = values.get('notes', '')
    if description:
        values['notes'] = f'{description}\n{notes}' if notes else description
    return values


_PROJECT_LEGACY = (
    FieldSpec('project_id', 'ProjectId', 'int', 0, identity=True),
    FieldSpec('customer_number', 'CustomerNumber', 'int', 0),
    FieldSpec('project_name', 'ProjectName'),
    FieldSpec('description', 'Description'),
    FieldSpec('created_date', 'CreatedDate', 'datetime', None),
    FieldSpec('booking', 'Deadline', 'datetime', None),
    FieldSpec('status', 'Status', 'str', 'Aktiv'),
    FieldSpec('folder_path', 'ProjectFolderPath'),
    FieldSpec('notes', 'Notes'),
)

_PROJECT_V2 = (
    FieldSpec('project_id', 'ProjectId', 'int', 0, identity=True),
    FieldSpec('customer_number', 'CustomerNumber', 'int', 0),
    FieldSpec('project_name', 'ProjectName'),
    FieldSpec('category', 'Category'),
    FieldSpec('created_date', 'CreatedDate', 'datetime', None),
    FieldSpec('booking', 'Booking', 'datetime', None),
    FieldSpec('status', 'Status', 'str', 'Aktiv'),
    FieldSpec('folder_path', 'ProjectFolderPath'),
    FieldSpec('notes', 'Notes'),
    FieldSpec('location', 'Location'),
    FieldSpec('booking_time', 'BookingTime', 'timespan', None),
)

_SERVICE_FLAGS = (
    FieldSpec('photography', 'Fotografie', 'bool', False),
    FieldSpec('videography', 'Videografie', 'bool', False),
    FieldSpec('greeting_cards', 'Glueckwunschkarten', 'bool', False),
    FieldSpec('getting_ready', 'GettingReady', 'bool', False),
    FieldSpec('getting_ready_groom', 'GettingReadyEr', 'bool', False),
    FieldSpec('getting_ready_bride', 'GettingReadySie', 'bool', False),
    FieldSpec('getting_ready_both', 'GettingReadyBeide', 'bool', False),
)

PROJECT_SCHEMAS = (
    Schema(1, _PROJECT_LEGACY, required=9, upgrade=_merge_description),
    Schema(2, _PROJECT_V2, required=11),
    # rows written between v2 and v3 may carry only some of the flags
    Schema(3, _PROJECT_V2 + _SERVICE_FLAGS, required=11),
)


# -- folder layout and info files ------------------------------------------

CUSTOMER_SUBFOLDERS = (
    '01_Projekte',
    '02_Vertraege',
    '03_Rechnungen',
    '04_Korrespondenz',
    '05_Medien',
    '06_Sonstiges',
    '07_Dokumente',
    '08_Angebote',
)

PROJECT_SUBFOLDERS = (
    '01_Fotos',
    '02_Videos',
    '03_Rohdaten',
    '04_Bearbeitet',
    '05_Export',
    '06_Dokumente',
    '07_Rechnungen',
    '08_Vertraege',
    '09_Notizen',
)


def customer_folder_name(customer_number: int) -> str:
    return f'C_{customer_number}'


def _customer_relpath(customer: Customer) -> PurePath:
    return PurePath(customer_folder_name(customer.customer_number))


def _project_relpath(project: Project) -> PurePath:
    name = f'P_{project.project_id}_{sanitize_folder_name(project.project_name)}'
    return PurePath(customer_folder_name(project.customer_number), CUSTOMER_SUBFOLDERS[0], name)


def _or_na(value: str) -> str:
    return value or 'n/a'


def _stamp_line(when: datetime, updated: bool) -> str:
    label = 'Aktualisiert am' if updated else 'Erstellt am'
    return f'{label}: {when:%d.%m.%Y %H:%M}'


def render_customer_info(customer: Customer, when: datetime, updated: bool = False) -> str:
    lines = [
        'KUNDENINFORMATION',
        '================',
        f'Kundennummer: {customer.customer_number}',
        f'Name: {customer.first_name} {customer.last_name}',
        f'Firma: {_or_na(customer.company)}',
        f'E-Mail: {customer.email}',
        f'Telefon: {customer.phone}',
        f'Adresse: {customer.full_address}',
        f'USt-ID: {_or_na(customer.vat_id)}',
        _stamp_line(when, updated),
        '',
        'ORDNERSTRUKTUR:',
        '01_Projekte/     - Alle Projektordner',
        '02_Vertraege/    - Verträge und Vereinbarungen',
        '03_Rechnungen/   - Rechnungen (Eingang/Ausgang)',
        '04_Korrespondenz/- E-Mails, Briefe, Kommunikation',
        '05_Medien/       - Fotos, Videos, Grafiken',
        '06_Sonstiges/    - Diverse Dateien',
        '07_Dokumente/    - Wichtige Dokumente',
        '08_Angebote/     - Angebote und Kostenvoranschläge',
    ]
    return '\n'.join(lines)


def render_project_info(project: Project, when: datetime, updated: bool = False) -> str:
    created = project.created_date.strftime('%d.%m.%Y %H:%M') if project.created_date else 'n/a'
    booking = project.booking.strftime('%d.%m.%Y') if project.booking else 'n/a'
    lines = [
        'PROJEKTINFORMATION',
        '=================',
        f'Projekt-ID: {project.project_id}',
        f'Projektname: {project.project_name}',
        f'Kundennummer: {project.customer_number}',
        f'Kategorie: {project.category}',
        f'Status: {project.status}',
        f'Buchungsdatum: {booking}',
        f'Uhrzeit: {_clock(project.booking_time)}',
        f'Ort: {_or_na(project.location)}',
        f'Erstellt am: {created}',
    ]
    if updated:
        lines.append(_stamp_line(when, updated))
    lines += [
        '',
        'DIENSTLEISTUNGEN:',
        f'Fotografie: {yes_no(project.photography)}',
        f'Videografie: {yes_no(project.videography)}',
        f'Danksagungskarten: {yes_no(project.greeting_cards)}',
        f'Getting Ready: {yes_no(project.getting_ready)}',
        f'Getting Ready für: {project.getting_ready_for}',
        '',
        'ORDNERSTRUKTUR:',
        '01_Fotos/        - Alle Fotos des Projekts',
        '02_Videos/       - Alle Videos des Projekts',
        '03_Rohdaten/     - Unbearbeitete Originaldateien',
        '04_Bearbeitet/   - Bearbeitete Dateien',
        '05_Export/       - Exportierte Dateien für Kunden',
        '06_Dokumente/    - Projektbezogene Dokumente',
        '07_Rechnungen/   - Rechnungen für dieses Projekt',
        '08_Vertraege/    - Verträge für dieses Projekt',
        '09_Notizen/      - Notizen und Planungen',
    ]
    return '\n'.join(lines)


# -- kinds -----------------------------------------------------------------

@dataclass(frozen=True)
class RecordKind:
    name: str
    record_type: type
    identity_field: str
    identity_floor: int
    schemas: Tuple[Schema, ...]
    subfolders: Tuple[str, ...]
    info_file: str
    folder_relpath: Callable[[Any], PurePath]
    render_info: Callable[[Any, datetime, bool], str]

    @property
    def schema(self) -> Schema:
        return self.schemas[-1]

    def identity_of(self, record: Any) -> int:
        return getattr(record, self.identity_field)

    def with_identity(self, record: Any, identity: int) -> Any:
        return replace(record, **{self.identity_field: identity})

    def check(self, record: Any) -> None:
        if not isinstance(record, self.record_type):
            raise InvalidRecord(f'expected {self.record_type.__name__}, got {type(record).__name__}')
        identity = self.identity_of(record)
        if isinstance(identity, bool) or not isinstance(identity, int) or identity < 0:
            raise InvalidRecord(f'{self.identity_field} must be a non-negative integer, got {identity!r}')
        for spec in self.schema.fields:
            value = getattr(record, spec.attr)
            if spec.kind == 'timespan' and value is not None:
                try:
                    check_timespan(value)
                except (TypeError, ValueError) as exc:
                    raise InvalidRecord(f'{spec.attr}: {exc}') from exc

    def schema_for_header(self, columns: Sequence[str]) -> Optional[Schema]:
        wanted = tuple(c.strip() for c in columns)
        for schema in self.schemas:
            if schema.columns == wanted:
                return schema
        return None


CUSTOMER = RecordKind(
    name='customer',
    record_type=Customer,
    identity_field='customer_number',
    identity_floor=1000,
    schemas=CUSTOMER_SCHEMAS,
    subfolders=CUSTOMER_SUBFOLDERS,
    info_file='Kundeninfo.txt',
    folder_relpath=_customer_relpath,
    render_info=render_customer_info,
)

PROJECT = RecordKind(
    name='project',
    record_type=Project,
    identity_field='project_id',
    identity_floor=1,
    schemas=PROJECT_SCHEMAS,
    subfolders=PROJECT_SUBFOLDERS,
    info_file='Projektinfo.txt',
    folder_relpath=_project_relpath,
    render_info=render_project_info,
)

KINDS = {'customers': CUSTOMER, 'projects': PROJECT}

__all__ = [
    'Customer',
    'Project',
    'RecordKind',
    'CUSTOMER',
    'PROJECT',
    'KINDS',
    'CUSTOMER_SCHEMAS',
    'PROJECT_SCHEMAS',
    'CUSTOMER_SUBFOLDERS',
    'PROJECT_SUBFOLDERS',
    'customer_folder_name',
    'render_customer_info',
    'render_project_info',
]
