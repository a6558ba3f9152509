"""Reference data: districts, groups, industries and locations.

Names are stored normalised and shown title-cased.  Uniqueness is
enforced by the database; a duplicate surfaces as :class:`OperationFailed`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from django import forms
from django.contrib.auth.models import User
from django.db import DatabaseError, IntegrityError, models, transaction

from ..forms import DistrictForm, GroupForm, IndustryForm, LocationForm, merge_with_instance
from ..models import District, Group, Industry, Location
from .activity import log_activity
from .errors import OperationFailed
from .text import to_title_case

logger = logging.getLogger(__name__)


def _district_row(obj: District) -> Dict[str, Any]:
    return {'id': obj.pk, 'name': obj.display_name}


def _industry_row(obj: Industry) -> Dict[str, Any]:
    return {'id': obj.pk, 'name': obj.display_name, 'respondents': getattr(obj, 'respondent_count', None)}


def _group_row(obj: Group) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'name': obj.display_name,
        'district_id': obj.district_id,
        'district': obj.district.display_name if obj.district else '',
    }


def _location_row(obj: Location) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'district_id': obj.district_id,
        'district': obj.district.display_name if obj.district else '',
        'sub_county': to_title_case(obj.sub_county),
        'parish': to_title_case(obj.parish),
    }


@dataclass(frozen=True)
class ReferenceKind:
    label: str
    model: Type[models.Model]
    form: Type[forms.ModelForm]
    ordering: Sequence[str]
    serialize: Callable[[Any], Dict[str, Any]]
    related: Sequence[str] = ()


REFERENCE_KINDS: Dict[str, ReferenceKind] = {
    'districts': ReferenceKind('District', District, DistrictForm, ('name',), _district_row),
    'groups': ReferenceKind('Group', Group, GroupForm, ('name',), _group_row, ('district',)),
    'industries': ReferenceKind('Industry', Industry, IndustryForm, ('name',), _industry_row),
    'locations': ReferenceKind(
        'Location', Location, LocationForm, ('sub_county', 'parish'), _location_row, ('district',)
    ),
}


def get_kind(kind: str) -> ReferenceKind:
    try:
        return REFERENCE_KINDS[kind]
    except KeyError as exc:
        raise OperationFailed(f'Unknown reference table "{kind}".') from exc


def list_reference(kind: str) -> List[Dict[str, Any]]:
    table = get_kind(kind)
    qs = table.model.objects.all().order_by(*table.ordering)
    if table.related:
        qs = qs.select_related(*table.related)
    if table.model is Industry:
        qs = qs.annotate(respondent_count=models.Count('respondent_links'))
    try:
        return [table.serialize(obj) for obj in qs]
    except DatabaseError as exc:
        logger.exception('Listing %s failed', kind)
        raise OperationFailed(f'{table.label} list could not be loaded.') from exc


def _form_message(form: forms.ModelForm) -> str:
    messages = []
    for field, errors in form.errors.items():
        prefix = '' if field == '__all__' else f"{field.replace('_', ' ')}: "
        messages.append(prefix + ' '.join(errors))
    return '; '.join(messages)


def save_reference(
    kind: str,
    data: Mapping[str, Any],
    instance: Optional[models.Model] = None,
    user: Optional[User] = None,
) -> Dict[str, Any]:
    """Insert or update one reference row and return it serialised."""

    table = get_kind(kind)
    if instance is not None:
        data = merge_with_instance(instance, table.form._meta.fields, data)
    form = table.form(data=data, instance=instance)
    if not form.is_valid():
        raise OperationFailed(_form_message(form))
    creating = instance is None
    try:
        with transaction.atomic():
            obj = form.save()
    except IntegrityError as exc:
        logger.warning('Duplicate %s rejected: %s', table.label.lower(), dict(data))
        raise OperationFailed(f'{table.label} already exists.') from exc
    except DatabaseError as exc:
        logger.exception('Saving %s failed', table.label.lower())
        raise OperationFailed(f'{table.label} could not be saved.') from exc
    log_activity(user, f"{'Created' if creating else 'Updated'} {table.label.lower()}", f'id={obj.pk}')
    return table.serialize(obj)


def delete_reference(kind: str, pk: int, user: Optional[User] = None) -> None:
    table = get_kind(kind)
    try:
        with transaction.atomic():
            deleted, _details = table.model.objects.filter(pk=pk).delete()
    except DatabaseError as exc:
        logger.exception('Deleting %s %s failed', table.label.lower(), pk)
        raise OperationFailed(f'{table.label} could not be deleted.') from exc
    if not deleted:
        raise OperationFailed(f'{table.label} not found.')
    log_activity(user, f'Deleted {table.label.lower()}', f'id={pk}')
