"""CSV and Excel downloads for respondents and the analytics summary."""

from __future__ import annotations

import csv
from datetime import date, datetime
from io import BytesIO, StringIO
from typing import Any, Dict, List, Mapping, Sequence

import openpyxl
from django.http import HttpResponse
from django.utils import timezone

from .aggregation import analytics_export_rows
from .respondents import RESPONDENT_COLUMNS
from .text import to_title_case

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

TITLE_CASED_COLUMNS = {
    'district',
    'sub_county',
    'parish',
    'gender',
    'education_level',
    'marital_status',
    'occupation',
    'value_chain_role',
    'value_chain_stage',
    'group_name',
}


def _header_label(column: str) -> str:
    return column.replace('_', ' ').title()


def _normalise_record_value(column: str, value: Any) -> Any:
    """Render a stored value for a spreadsheet cell."""

    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, (list, tuple)):
        return '; '.join(str(item) for item in value)
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if column in TITLE_CASED_COLUMNS:
        return to_title_case(value)
    return value


def _table(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> List[List[Any]]:
    table: List[List[Any]] = [[_header_label(column) for column in columns]]
    for row in rows:
        table.append([_normalise_record_value(column, row.get(column)) for column in columns])
    return table


def _csv_content(table: Sequence[Sequence[Any]]) -> str:
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerows(table)
    return '\ufeff' + output.getvalue()


def _filename(prefix: str, extension: str) -> str:
    return f"{prefix}-{timezone.now().strftime('%Y%m%d-%H%M%S')}.{extension}"


def respondents_csv(rows: Sequence[Mapping[str, Any]], columns: Sequence[str] = RESPONDENT_COLUMNS) -> HttpResponse:
    """Every field quoted, prefixed with a BOM so spreadsheets detect UTF-8."""

    response = HttpResponse(_csv_content(_table(rows, columns)), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{_filename("respondents", "csv")}"'
    return response


def respondents_xlsx(rows: Sequence[Mapping[str, Any]], columns: Sequence[str] = RESPONDENT_COLUMNS) -> HttpResponse:
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = 'Respondents'
    for line in _table(rows, columns):
        worksheet.append(line)
    stream = BytesIO()
    workbook.save(stream)
    stream.seek(0)
    response = HttpResponse(stream.read(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{_filename("respondents", "xlsx")}"'
    return response


def analytics_csv(payload: Dict[str, Any]) -> HttpResponse:
    response = HttpResponse(_csv_content(analytics_export_rows(payload)), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = 'attachment; filename="analytics_report.csv"'
    return response
