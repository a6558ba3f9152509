"""Helpers for ingesting baseline survey exports (Excel or CSV)."""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from django.contrib.auth.models import User
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..forms import CATEGORY_FIELDS, LIST_FIELDS
from ..models import Industry, Respondent
from .activity import log_activity
from .errors import OperationFailed
from .respondents import link_industries, match_group
from .text import normalize, parse_yes_no, split_tags

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ['respondent_name', 'district', 'gender']
HEADER_ALIASES = {
    'name': 'respondent_name',
    'full name': 'respondent_name',
    'full_name': 'respondent_name',
    'respondent': 'respondent_name',
    'respondent name': 'respondent_name',
    'sub-county': 'sub_county',
    'sub county': 'sub_county',
    'subcounty': 'sub_county',
    'sex': 'gender',
    'education': 'education_level',
    'education level': 'education_level',
    'marital status': 'marital_status',
    'disability': 'has_disability',
    'household size': 'household_size',
    'household': 'household_size',
    'industry': 'industry_involvement',
    'industries': 'industry_involvement',
    'industry involvement': 'industry_involvement',
    'role': 'value_chain_role',
    'value chain role': 'value_chain_role',
    'stage': 'value_chain_stage',
    'value chain stage': 'value_chain_stage',
    'group': 'group_name',
    'group name': 'group_name',
    'business training': 'has_business_training',
    'registered': 'is_business_registered',
    'financial access': 'has_financial_access',
    'technology': 'uses_technology',
    'uses technology': 'uses_technology',
    'future plans': 'business_future_plans',
    'support needed': 'support_needed',
    'submitted': 'timestamp',
    'submission time': 'timestamp',
}

BOOLEAN_FIELDS = (
    'has_disability',
    'has_business_training',
    'is_business_registered',
    'has_financial_access',
    'uses_technology',
)
INTEGER_FIELDS = ('age', 'household_size')
TEXT_FIELDS = ('respondent_name', 'other_economic_activities', 'support_needed')


class RespondentImportError(OperationFailed):
    """Raised when an uploaded workbook cannot be processed."""


@dataclass
class ImportStats:
    total_rows: int
    accepted_rows: int

    @property
    def skipped_rows(self) -> int:
        return max(self.total_rows - self.accepted_rows, 0)

    def as_dict(self) -> Dict[str, int]:
        return {
            'total_rows': self.total_rows,
            'accepted_rows': self.accepted_rows,
            'skipped_rows': self.skipped_rows,
        }


def _normalise_header(value: Any) -> str:
    text = str(value).strip().lower() if value is not None else ''
    return HEADER_ALIASES.get(text, text.replace(' ', '_'))


def _coerce_int(value: Any) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None
    return number if number >= 0 else None


def _coerce_text(value: Any) -> str:
    return str(value).strip() if value not in (None, '') else ''


def _coerce_timestamp(value: Any):
    if value in (None, ''):
        return timezone.now()
    if hasattr(value, 'tzinfo'):
        parsed = value
    else:
        parsed = parse_datetime(str(value).strip())
        if parsed is None:
            return timezone.now()
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed


def _iter_xlsx(upload) -> Iterator[Sequence[Any]]:
    try:
        workbook = load_workbook(upload, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
        raise RespondentImportError('The uploaded workbook could not be read.') from exc
    try:
        yield from workbook.active.iter_rows(values_only=True)
    finally:
        workbook.close()


def _iter_csv(upload) -> Iterator[Sequence[Any]]:
    raw = upload.read()
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8-sig')
        except UnicodeDecodeError as exc:
            raise RespondentImportError('The CSV file must be UTF-8 encoded.') from exc
    yield from csv.reader(io.StringIO(raw))


def _iter_rows(upload, filename: str) -> Iterator[Sequence[Any]]:
    suffix = Path(filename or '').suffix.lower()
    if hasattr(upload, 'seek'):
        upload.seek(0)
    if suffix == '.csv':
        return _iter_csv(upload)
    if suffix in ('.xlsx', '.xlsm'):
        return _iter_xlsx(upload)
    raise RespondentImportError('Upload an .xlsx workbook or a .csv file.')


def _header_map(header_row: Optional[Sequence[Any]]) -> Dict[str, int]:
    if not header_row:
        raise RespondentImportError('The uploaded file does not contain any rows.')
    header_map: Dict[str, int] = {}
    for idx, raw_header in enumerate(header_row):
        name = _normalise_header(raw_header)
        if name and name not in header_map:
            header_map[name] = idx
    missing = [col for col in REQUIRED_HEADERS if col not in header_map]
    if missing:
        raise RespondentImportError('Missing required columns: ' + ', '.join(missing))
    return header_map


def _cell(row: Sequence[Any], header_map: Dict[str, int], name: str) -> Any:
    idx = header_map.get(name)
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def parse_row(row: Sequence[Any], header_map: Dict[str, int]) -> Optional[Dict[str, Any]]:
    """Turn one sheet row into respondent field values, or ``None`` if unusable."""

    if not any(value not in (None, '') for value in row):
        return None
    values: Dict[str, Any] = {}
    for name in CATEGORY_FIELDS:
        values[name] = normalize(_coerce_text(_cell(row, header_map, name)))
    for name in TEXT_FIELDS:
        values[name] = _coerce_text(_cell(row, header_map, name))
    for name in BOOLEAN_FIELDS:
        values[name] = parse_yes_no(_cell(row, header_map, name))
    for name in INTEGER_FIELDS:
        values[name] = _coerce_int(_cell(row, header_map, name))
    for name in LIST_FIELDS:
        values[name] = split_tags(_cell(row, header_map, name))
    values['industry_involvement'] = ', '.join(split_tags(_cell(row, header_map, 'industry_involvement')))
    values['timestamp'] = _coerce_timestamp(_cell(row, header_map, 'timestamp'))
    if not values['respondent_name'] and not values['district']:
        return None
    return values


def parse_upload(upload, filename: str) -> Tuple[List[Dict[str, Any]], ImportStats]:
    rows = _iter_rows(upload, filename)
    header_map = _header_map(next(rows, None))
    parsed: List[Dict[str, Any]] = []
    total_rows = 0
    for row in rows:
        total_rows += 1
        values = parse_row(row, header_map)
        if values is not None:
            parsed.append(values)
    if not parsed:
        raise RespondentImportError('No valid rows were found in the uploaded file.')
    return parsed, ImportStats(total_rows=total_rows, accepted_rows=len(parsed))


def _persist(rows: Iterable[Dict[str, Any]]) -> None:
    industries: Dict[str, Industry] = {}
    groups: Dict[str, Any] = {}
    for values in rows:
        group_name = values.get('group_name') or ''
        if group_name not in groups:
            groups[group_name] = match_group(group_name)
        respondent = Respondent.objects.create(group=groups[group_name], **values)
        link_industries(respondent, industries)


def import_respondents(
    upload,
    filename: str,
    user: Optional[User] = None,
    dry_run: bool = False,
) -> ImportStats:
    """Parse ``upload`` and insert one respondent per usable row.

    The whole file is inserted in a single transaction.  ``dry_run`` parses
    and validates without writing anything.
    """

    rows, stats = parse_upload(upload, filename)
    if dry_run:
        logger.info('Dry run of %s: %s', filename, stats.as_dict())
        return stats
    try:
        with transaction.atomic():
            _persist(rows)
    except DatabaseError as exc:
        logger.exception('Importing %s failed', filename)
        raise RespondentImportError('The respondents could not be saved.') from exc
    summary = ' '.join(f'{key}={value}' for key, value in stats.as_dict().items())
    log_activity(user, 'Imported respondents', f'file={filename} {summary}')
    return stats
