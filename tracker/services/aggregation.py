"""Chart-ready summaries built from respondent and follow-up rows.

Every function here is pure: it takes rows already fetched from the
database (``QuerySet.values()`` dictionaries) and returns plain lists and
dictionaries that the JSON views hand straight to the charts.  Filtering
happens upstream in the query, never here.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .text import UNKNOWN, normalize, or_default, to_title_case

Row = Mapping[str, Any]
ChartItem = Dict[str, Any]

COLORS = [
    '#3B82F6',
    '#10B981',
    '#F59E0B',
    '#EF4444',
    '#8B5CF6',
    '#06B6D4',
    '#84CC16',
    '#F97316',
]

FREQUENCY_LABELS = {
    1: 'Never',
    2: 'Occasionally',
    3: 'Monthly',
    4: 'Weekly',
    5: 'Daily',
}
NEW_MEMBER = 'New Member'

GP_LABELS = ['Very Poor', 'Poor', 'Average', 'Good', 'Very Good']

INCOME_LABELS = {
    -1: 'I’m in debt',
    0: 'UGX 0 (no change)',
    1: 'UGX 50k–100k',
    2: 'UGX 110k–250k',
    3: 'UGX 260k–350k',
    4: 'UGX 360k–500k',
    5: 'UGX 510k+',
}

EARNINGS_LABELS = {
    -1: 'Operated at a loss / group debt',
    0: 'UGX 0 (no earnings)',
    1: 'UGX 1–350k',
    2: 'UGX 360k–700k',
    3: 'UGX 710k–1,500k',
    4: 'UGX 1,510k–3,000k',
    5: 'UGX 3,010k+',
}

# Canonical industry tags in display order.
INDUSTRY_VOCABULARY: Tuple[Tuple[str, str], ...] = (('coffee', 'Coffee'), ('tea', 'Tea'))

CHALLENGE_FIELDS = ('business_challenges', 'financial_challenges', 'market_challenges')
EXCLUDED_FLOW_TAG = 'Other'


def _tally(names: Iterable[str]) -> List[ChartItem]:
    counts: Dict[str, int] = defaultdict(int)
    for name in names:
        counts[name] += 1
    return [{'name': name, 'value': value} for name, value in counts.items()]


def _list_value(row: Row, field: str) -> List[Any]:
    value = row.get(field)
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def round_half_up(value: float) -> int:
    """Round ``.5`` away from negative infinity, matching chart labels."""

    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Generic building blocks
# ---------------------------------------------------------------------------

def categorical_count(
    rows: Sequence[Row],
    field: str,
    transform: Callable[[Any], str] = to_title_case,
) -> List[ChartItem]:
    """Count rows per value of ``field`` in first-seen order.

    Missing or blank values land in the ``Unknown`` bucket before the
    transform is applied, so ``None`` and ``"  "`` share one bucket.
    """

    return _tally(transform(or_default(row.get(field))) for row in rows)


def sort_by_value(items: Sequence[ChartItem]) -> List[ChartItem]:
    """Sort chart items by count, largest first; ties keep their order."""

    return sorted(items, key=lambda item: item['value'], reverse=True)


def top_n(items: Sequence[ChartItem], limit: int) -> List[ChartItem]:
    return sort_by_value(items)[:limit]


def grouped_average(
    rows: Sequence[Row],
    group_key: Callable[[Row], str],
    field: str,
    whole: bool = False,
) -> List[ChartItem]:
    """Average ``field`` per group, skipping rows where the value is ``None``.

    ``whole`` rounds each mean half-up to an integer; otherwise the mean is
    returned as a float.  Groups with no usable value are omitted.
    """

    sums: Dict[str, List[float]] = {}
    for row in rows:
        value = row.get(field)
        if value is None:
            continue
        bucket = sums.setdefault(group_key(row), [0.0, 0])
        bucket[0] += value
        bucket[1] += 1
    results: List[ChartItem] = []
    for name, (total, count) in sums.items():
        mean = total / count
        results.append({'name': name, 'value': round_half_up(mean) if whole else mean})
    return results


def multi_valued_tally(rows: Sequence[Row], *fields: str) -> List[ChartItem]:
    """Count every tag of every list field; one row may hit many buckets."""

    names: List[str] = []
    for row in rows:
        for field in fields:
            for tag in _list_value(row, field):
                if tag in (None, ''):
                    continue
                names.append(to_title_case(tag))
    return _tally(names)


def challenge_flow(
    rows: Sequence[Row],
    group_field: str = 'group_name',
    tag_fields: Sequence[str] = CHALLENGE_FIELDS,
) -> Dict[str, List[Dict[str, Any]]]:
    """Build sankey nodes and links from groups to the challenges they report.

    Group nodes take indices ``0..len(groups)-1`` and tag nodes follow,
    both in first-seen order, so a link targets ``len(groups) + tag_index``.
    """

    per_group: Dict[str, Dict[str, int]] = {}
    tags: List[str] = []
    for row in rows:
        group = to_title_case(row.get(group_field))
        if not group:
            continue
        for field in tag_fields:
            for raw in _list_value(row, field):
                if raw in (None, ''):
                    continue
                tag = to_title_case(raw)
                if tag == EXCLUDED_FLOW_TAG:
                    continue
                counts = per_group.setdefault(group, {})
                counts[tag] = counts.get(tag, 0) + 1

    groups = list(per_group.keys())
    for group in groups:
        for tag in per_group[group]:
            if tag not in tags:
                tags.append(tag)

    nodes = [{'name': name} for name in groups] + [{'name': name} for name in tags]
    links = []
    for source, group in enumerate(groups):
        for tag, value in per_group[group].items():
            links.append({'source': source, 'target': len(groups) + tags.index(tag), 'value': value})
    return {'nodes': nodes, 'links': links}


def percentage(subset: int, total: int) -> float:
    """Return ``subset / total * 100`` or ``0.0`` when ``total`` is zero."""

    return (subset / total) * 100.0 if total else 0.0


# ---------------------------------------------------------------------------
# Industry involvement
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IndustryMembership:
    """Parsed ``industry_involvement`` text.

    ``matched`` holds the canonical tags found (``"coffee"``, ``"tea"``);
    ``other`` keeps any remaining tokens verbatim, in input order.
    """

    matched: frozenset
    other: Tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not self.matched and not self.other


def parse_industry_involvement(text: Optional[str]) -> IndustryMembership:
    if text is None:
        return IndustryMembership(frozenset(), ())
    tokens = [part.strip() for part in str(text).split(',') if part.strip()]
    canonical = {key for key, _label in INDUSTRY_VOCABULARY}
    matched = frozenset(token.lower() for token in tokens if token.lower() in canonical)
    other = tuple(token for token in tokens if token.lower() not in canonical)
    return IndustryMembership(matched, other)


def industry_label(membership: IndustryMembership, raw: Optional[str] = None) -> str:
    """Join matched tags (vocabulary order) and leftovers with ``" + "``."""

    parts = [label for key, label in INDUSTRY_VOCABULARY if key in membership.matched]
    parts.extend(to_title_case(token) for token in membership.other)
    if parts:
        return ' + '.join(parts)
    return to_title_case(raw) or UNKNOWN


def industry_tally(rows: Sequence[Row], field: str = 'industry_involvement') -> Dict[str, List[ChartItem]]:
    """Return independent Coffee/Tea counters and the combined-label tally."""

    summary = {label: 0 for _key, label in INDUSTRY_VOCABULARY}
    details: List[str] = []
    for row in rows:
        raw = row.get(field)
        membership = parse_industry_involvement(raw)
        if membership.is_empty:
            details.append(UNKNOWN)
            continue
        for key, label in INDUSTRY_VOCABULARY:
            if key in membership.matched:
                summary[label] += 1
        details.append(industry_label(membership, raw))
    return {
        'summary': [{'name': name, 'value': value} for name, value in summary.items()],
        'detail': _tally(details),
    }


# ---------------------------------------------------------------------------
# Respondent analytics
# ---------------------------------------------------------------------------

def age_group(age: Any) -> str:
    try:
        years = int(age)
    except (TypeError, ValueError):
        return UNKNOWN
    if years <= 0:
        return UNKNOWN
    if years < 25:
        return '18-24'
    if years < 35:
        return '25-34'
    if years < 45:
        return '35-44'
    if years < 55:
        return '45-54'
    return '55+'


def _is_farmer_in(row: Row, crop: str) -> bool:
    return 'farmer' in normalize(row.get('value_chain_role')) and crop in normalize(row.get('industry_involvement'))


def _processing_tea_stats(rows: Sequence[Row]) -> Dict[str, Any]:
    processing = [row for row in rows if normalize(row.get('value_chain_stage')) == 'processing']
    tea = [row for row in processing if 'tea' in parse_industry_involvement(row.get('industry_involvement')).matched]
    return {'count': len(processing), 'percentage': percentage(len(tea), len(processing))}


def build_respondent_analytics(rows: Sequence[Row]) -> Dict[str, Any]:
    """Assemble the respondent dashboard: demographics, business, geography, technology."""

    industries = industry_tally(rows)
    grouped_rows = [row for row in rows if to_title_case(row.get('group_name'))]
    adoption = _tally('Uses Technology' if row.get('uses_technology') else 'No Technology' for row in rows)

    return {
        'total_respondents': len(rows),
        'coffee_farmers': sum(1 for row in rows if _is_farmer_in(row, 'coffee')),
        'tea_farmers': sum(1 for row in rows if _is_farmer_in(row, 'tea')),
        'demographics': {
            'gender': sort_by_value(categorical_count(rows, 'gender')),
            'education': sort_by_value(categorical_count(rows, 'education_level')),
            'age_groups': sort_by_value(_tally(age_group(row.get('age')) for row in rows)),
            'marital_status': sort_by_value(categorical_count(rows, 'marital_status')),
        },
        'business': {
            'occupation': sort_by_value(categorical_count(rows, 'occupation')),
            'industry': sort_by_value(industries['detail']),
            'industry_summary': sort_by_value(industries['summary']),
            'value_chain_stage': sort_by_value(categorical_count(rows, 'value_chain_stage')),
            'processing_tea_stats': _processing_tea_stats(rows),
            'challenges': top_n(
                [
                    item
                    for item in multi_valued_tally(grouped_rows, *CHALLENGE_FIELDS)
                    if item['name'] != EXCLUDED_FLOW_TAG
                ],
                10,
            ),
            'challenge_sankey': challenge_flow(rows),
        },
        'geography': {
            'districts': sort_by_value(categorical_count(rows, 'district')),
            'sub_counties': top_n(categorical_count(rows, 'sub_county'), 10),
        },
        'technology': {
            'adoption': sort_by_value(adoption),
            'barriers': top_n(multi_valued_tally(rows, 'technology_barriers'), 8),
        },
    }


# ---------------------------------------------------------------------------
# Follow-up analytics
# ---------------------------------------------------------------------------

def frequency_bucket(value: Any) -> Optional[str]:
    if value is None:
        return NEW_MEMBER
    return FREQUENCY_LABELS.get(value)


def _followup_group(row: Row) -> str:
    return to_title_case(or_default(row.get('respondent__group_name')))


def _with_palette(items: Sequence[ChartItem], labels: Mapping[int, str]) -> List[ChartItem]:
    coloured = []
    for index, item in enumerate(items):
        coloured.append(
            {
                'name': item['name'],
                'value': item['value'],
                'label': labels.get(item['value'], ''),
                'color': COLORS[index % len(COLORS)],
            }
        )
    return coloured


def build_followup_analytics(respondents: Sequence[Row], followups: Sequence[Row]) -> Dict[str, Any]:
    """Assemble the follow-up dashboard.

    ``followups`` rows carry the parent respondent's group under
    ``respondent__group_name``.  Group averages are coloured from the
    shared palette in first-seen order.
    """

    total_respondents = len(respondents)
    new_respondents = sum(1 for row in respondents if not row.get('household_size'))

    frequencies = {label: 0 for label in FREQUENCY_LABELS.values()}
    frequencies[NEW_MEMBER] = 0
    for row in followups:
        bucket = frequency_bucket(row.get('practice_frequency'))
        if bucket is not None:
            frequencies[bucket] += 1

    progress = []
    for index, item in enumerate(grouped_average(followups, _followup_group, 'group_progress')):
        progress.append(
            {
                'name': item['name'],
                'avg': item['value'],
                'label': GP_LABELS[min(max(round_half_up(item['value']), 1), 5) - 1],
                'color': COLORS[index % len(COLORS)],
            }
        )

    return {
        'summary': {
            'total_respondents': total_respondents,
            'total_followups': len(followups),
            'new_members': sum(1 for row in followups if row.get('attended_training') is False),
            'new_respondent_pct': percentage(new_respondents, total_respondents),
        },
        'practices': multi_valued_tally(followups, 'practices_applied'),
        'frequencies': [{'name': name, 'value': value} for name, value in frequencies.items()],
        'results': multi_valued_tally(followups, 'practice_results'),
        'group_progress': progress,
        'income_changes': _with_palette(
            grouped_average(followups, _followup_group, 'income_change', whole=True), INCOME_LABELS
        ),
        'group_earnings': _with_palette(
            grouped_average(followups, _followup_group, 'group_earnings', whole=True), EARNINGS_LABELS
        ),
        'axis_labels': {
            'group_progress': GP_LABELS,
            'income_change': INCOME_LABELS,
            'group_earnings': EARNINGS_LABELS,
        },
    }


# ---------------------------------------------------------------------------
# Baseline vs. follow-up comparison
# ---------------------------------------------------------------------------

def _followups_by_respondent(followups: Sequence[Row]) -> Dict[Any, List[Row]]:
    grouped: Dict[Any, List[Row]] = {}
    for row in followups:
        respondent_id = row.get('respondent_id')
        if respondent_id is None:
            continue
        grouped.setdefault(respondent_id, []).append(row)
    for visits in grouped.values():
        visits.sort(key=lambda visit: (str(visit.get('visit_date') or ''), str(visit.get('created_at') or '')))
    return grouped


def build_comparison(respondents: Sequence[Row], followups: Sequence[Row]) -> Dict[str, Any]:
    """Compare baseline answers with each respondent's latest follow-up."""

    by_respondent = _followups_by_respondent(followups)
    followed = [row for row in respondents if by_respondent.get(row['id'])]

    baseline_training = sum(1 for row in respondents if row.get('has_business_training'))
    followup_training = sum(
        1 for row in followed if any(visit.get('attended_training') for visit in by_respondent[row['id']])
    )

    latest_income: List[str] = []
    details: List[Dict[str, Any]] = []
    for row in respondents:
        visits = by_respondent.get(row['id'], [])
        latest = visits[-1] if visits else None
        if latest is not None:
            income = latest.get('income_change')
            latest_income.append(INCOME_LABELS.get(income, UNKNOWN) if income is not None else UNKNOWN)
        details.append(
            {
                'id': row['id'],
                'respondent_name': or_default(row.get('respondent_name'), 'N/A'),
                'district': to_title_case(or_default(row.get('district'))),
                'group_name': to_title_case(or_default(row.get('group_name'))),
                'followup_count': len(visits),
                'last_visit': latest.get('visit_date') if latest else None,
                'training_before': bool(row.get('has_business_training')),
                'training_after': bool(latest.get('attended_training')) if latest else None,
            }
        )

    return {
        'total_respondents': len(respondents),
        'respondents_with_followups': len(followed),
        'followup_rate': percentage(len(followed), len(respondents)),
        'training': [
            {'name': 'Business Training', 'original': baseline_training, 'followup': followup_training},
        ],
        'income_change': sort_by_value(_tally(latest_income)),
        'respondents': details,
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def analytics_export_rows(payload: Mapping[str, Any]) -> List[List[str]]:
    """Flatten a respondent analytics payload into ``Metric, Category, Value`` rows."""

    rows: List[List[str]] = [
        ['Metric', 'Category', 'Value'],
        ['Total Respondents', '', str(payload['total_respondents'])],
        ['Coffee Farmers', '', str(payload['coffee_farmers'])],
        ['Tea Farmers', '', str(payload['tea_farmers'])],
    ]
    sections = [
        ('Gender', payload['demographics']['gender']),
        ('Education', payload['demographics']['education']),
        ('Occupation', payload['business']['occupation']),
        ('Industry Summary', payload['business']['industry_summary']),
        ('Industry Detail', payload['business']['industry']),
        ('District', payload['geography']['districts']),
    ]
    for metric, items in sections:
        for item in items:
            rows.append([metric, item['name'], str(item['value'])])
    return rows
