"""Respondent store: filtered queries and row-level create, update and delete."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from django.contrib.auth.models import User
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q, QuerySet

from ..forms import RespondentForm, merge_with_instance
from ..models import Group, Industry, Respondent, RespondentIndustry
from .activity import log_activity
from .aggregation import parse_industry_involvement
from .errors import OperationFailed
from .text import normalize, to_title_case

logger = logging.getLogger(__name__)

ALL = 'all'

# Columns read for aggregation and export, in export order.
RESPONDENT_COLUMNS = [
    'id',
    'respondent_name',
    'timestamp',
    'created_at',
    'district',
    'sub_county',
    'parish',
    'age',
    'gender',
    'education_level',
    'marital_status',
    'has_disability',
    'occupation',
    'household_size',
    'industry_involvement',
    'value_chain_role',
    'value_chain_stage',
    'other_economic_activities',
    'has_business_training',
    'is_business_registered',
    'has_financial_access',
    'uses_technology',
    'business_challenges',
    'financial_challenges',
    'market_challenges',
    'technology_barriers',
    'business_future_plans',
    'support_needed',
    'group_name',
]


@dataclass(frozen=True)
class RespondentFilters:
    """Filters shared by the list, export and analytics endpoints.

    ``district`` and ``group`` are matched case-insensitively as substrings.
    ``gender`` must match exactly (ignoring case) so "male" does not pick
    up "female".  The value ``"all"`` or an empty string disables a filter.
    """

    district: str = ''
    gender: str = ''
    group: str = ''
    search: str = ''

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> 'RespondentFilters':
        def clean(name: str) -> str:
            value = normalize(params.get(name))
            return '' if value == ALL else value

        return cls(
            district=clean('district'),
            gender=clean('gender'),
            group=clean('group'),
            search=normalize(params.get('search') or params.get('q')),
        )

    def as_dict(self) -> Dict[str, str]:
        return {
            'district': self.district or ALL,
            'gender': self.gender or ALL,
            'group': self.group or ALL,
            'search': self.search,
        }


def filter_respondents(filters: RespondentFilters, qs: Optional[QuerySet] = None) -> QuerySet:
    qs = Respondent.objects.all() if qs is None else qs
    if filters.district:
        qs = qs.filter(district__icontains=filters.district)
    if filters.gender:
        qs = qs.filter(gender__iexact=filters.gender)
    if filters.group:
        qs = qs.filter(group_name__icontains=filters.group)
    if filters.search:
        qs = qs.filter(
            Q(respondent_name__icontains=filters.search)
            | Q(district__icontains=filters.search)
            | Q(group_name__icontains=filters.search)
        )
    return qs


def fetch_respondent_rows(filters: RespondentFilters) -> List[Dict[str, Any]]:
    """Evaluate the filtered query into plain dictionaries."""

    try:
        return list(filter_respondents(filters).values(*RESPONDENT_COLUMNS))
    except DatabaseError as exc:
        logger.exception('Fetching respondents failed for %s', filters)
        raise OperationFailed('Respondent data could not be loaded.') from exc


def serialize_respondent(respondent: Respondent, detail: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        'id': respondent.pk,
        'respondent_name': respondent.respondent_name,
        'district': to_title_case(respondent.district),
        'sub_county': to_title_case(respondent.sub_county),
        'parish': to_title_case(respondent.parish),
        'gender': to_title_case(respondent.gender),
        'industry_involvement': respondent.industry_involvement,
        'value_chain_role': to_title_case(respondent.value_chain_role),
        'group_name': to_title_case(respondent.group_name),
        'created_at': respondent.created_at.isoformat() if respondent.created_at else None,
    }
    if detail:
        data.update(
            {
                'timestamp': respondent.timestamp.isoformat() if respondent.timestamp else None,
                'age': respondent.age,
                'education_level': to_title_case(respondent.education_level),
                'marital_status': to_title_case(respondent.marital_status),
                'has_disability': respondent.has_disability,
                'occupation': to_title_case(respondent.occupation),
                'household_size': respondent.household_size,
                'industries': [industry.display_name for industry in respondent.industries.all()],
                'value_chain_stage': to_title_case(respondent.value_chain_stage),
                'other_economic_activities': respondent.other_economic_activities,
                'has_business_training': respondent.has_business_training,
                'is_business_registered': respondent.is_business_registered,
                'has_financial_access': respondent.has_financial_access,
                'uses_technology': respondent.uses_technology,
                'business_challenges': respondent.business_challenges,
                'financial_challenges': respondent.financial_challenges,
                'market_challenges': respondent.market_challenges,
                'technology_barriers': respondent.technology_barriers,
                'business_future_plans': respondent.business_future_plans,
                'support_needed': respondent.support_needed,
            }
        )
    return data


def industry_for_token(token: str, cache: Optional[Dict[str, Industry]] = None) -> Industry:
    """Fetch or create the industry row for one involvement token."""

    name = normalize(token)
    if cache is not None and name in cache:
        return cache[name]
    industry, _created = Industry.objects.get_or_create(name=name)
    if cache is not None:
        cache[name] = industry
    return industry


def link_industries(respondent: Respondent, cache: Optional[Dict[str, Industry]] = None) -> None:
    """Replace the respondent's industry links with the parsed involvement tokens."""

    membership = parse_industry_involvement(respondent.industry_involvement)
    tokens = sorted(membership.matched) + list(membership.other)
    RespondentIndustry.objects.filter(respondent=respondent).delete()
    seen = set()
    for token in tokens:
        industry = industry_for_token(token, cache)
        if industry.pk in seen:
            continue
        seen.add(industry.pk)
        RespondentIndustry.objects.create(respondent=respondent, industry=industry)


def match_group(group_name: str) -> Optional[Group]:
    if not group_name:
        return None
    return Group.objects.filter(name=normalize(group_name)).first()


def _form_errors(form: RespondentForm) -> str:
    messages = []
    for field, errors in form.errors.items():
        label = 'Respondent' if field == '__all__' else field.replace('_', ' ')
        messages.append(f"{label}: {' '.join(errors)}")
    return '; '.join(messages)


def save_respondent(
    data: Mapping[str, Any],
    user: Optional[User] = None,
    instance: Optional[Respondent] = None,
) -> Respondent:
    """Validate ``data`` and insert or update one respondent.

    Raises :class:`OperationFailed` with the form errors or the database
    failure message.  Last write wins for concurrent edits.
    """

    if instance is not None and instance.pk is not None:
        data = merge_with_instance(instance, RespondentForm.Meta.fields, data)
    form = RespondentForm(data=data, instance=instance)
    if not form.is_valid():
        raise OperationFailed(_form_errors(form))
    creating = instance is None or instance.pk is None
    try:
        with transaction.atomic():
            respondent = form.save(commit=False)
            respondent.group = match_group(respondent.group_name)
            respondent.save()
            link_industries(respondent)
    except (DatabaseError, IntegrityError) as exc:
        logger.exception('Saving respondent failed')
        raise OperationFailed('The respondent could not be saved.') from exc
    log_activity(
        user,
        'Created respondent' if creating else 'Updated respondent',
        f'id={respondent.pk} name={respondent.respondent_name}',
    )
    return respondent


def delete_respondent(respondent: Respondent, user: Optional[User] = None) -> None:
    """Delete one respondent; its follow-ups stay with ``respondent`` cleared."""

    pk = respondent.pk
    try:
        with transaction.atomic():
            respondent.delete()
    except DatabaseError as exc:
        logger.exception('Deleting respondent %s failed', pk)
        raise OperationFailed('The respondent could not be deleted.') from exc
    log_activity(user, 'Deleted respondent', f'id={pk}')


def filter_options() -> Dict[str, List[str]]:
    """Distinct districts, genders and groups for the filter drop-downs."""

    def distinct(field: str) -> List[str]:
        values = Respondent.objects.exclude(**{field: ''}).order_by().values_list(field, flat=True).distinct()
        return sorted({to_title_case(value) for value in values})

    try:
        return {
            'districts': distinct('district'),
            'genders': distinct('gender'),
            'groups': distinct('group_name'),
        }
    except DatabaseError as exc:
        logger.exception('Loading filter options failed')
        raise OperationFailed('Filter options could not be loaded.') from exc
