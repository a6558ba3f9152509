"""Forms used by the tracker application.

The views accept either form-encoded posts or JSON bodies and push both
through these forms, so validation and normalisation live in one place.
Category fields are stored normalised; list fields accept a JSON list or
a comma/semicolon separated string.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from django import forms
from django.db import models
from django.forms.models import model_to_dict

from .models import District, Group, Industry, Location, Respondent
from .services.text import normalize, split_tags

CATEGORY_FIELDS = (
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
)

LIST_FIELDS = (
    'business_challenges',
    'financial_challenges',
    'market_challenges',
    'technology_barriers',
    'business_future_plans',
)


class TagListField(forms.Field):
    """Accepts ``["a", "b"]`` or ``"a, b"`` and cleans to a list of strings."""

    def to_python(self, value: Any) -> List[str]:
        return split_tags(value)

    def validate(self, value: List[str]) -> None:
        if self.required and not value:
            raise forms.ValidationError(self.error_messages['required'], code='required')


class RespondentForm(forms.ModelForm):
    """Create or edit a baseline respondent."""

    business_challenges = TagListField(required=False)
    financial_challenges = TagListField(required=False)
    market_challenges = TagListField(required=False)
    technology_barriers = TagListField(required=False)
    business_future_plans = TagListField(required=False)

    class Meta:
        model = Respondent
        fields = [
            'respondent_name',
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

    def clean_respondent_name(self) -> str:
        return (self.cleaned_data.get('respondent_name') or '').strip()

    def clean_industry_involvement(self) -> str:
        return ', '.join(split_tags(self.cleaned_data.get('industry_involvement')))

    def clean(self) -> dict[str, Any]:  # type: ignore[override]
        cleaned_data = super().clean()
        for name in CATEGORY_FIELDS:
            if name in cleaned_data:
                cleaned_data[name] = normalize(cleaned_data[name])
        return cleaned_data


class _NamedReferenceForm(forms.ModelForm):
    def clean_name(self) -> str:
        name = normalize(self.cleaned_data.get('name'))
        if not name:
            raise forms.ValidationError('Name is required.')
        return name


class DistrictForm(_NamedReferenceForm):
    class Meta:
        model = District
        fields = ['name']


class IndustryForm(_NamedReferenceForm):
    class Meta:
        model = Industry
        fields = ['name']


class GroupForm(_NamedReferenceForm):
    class Meta:
        model = Group
        fields = ['name', 'district']


class LocationForm(forms.ModelForm):
    class Meta:
        model = Location
        fields = ['district', 'sub_county', 'parish']

    def clean(self) -> dict[str, Any]:  # type: ignore[override]
        cleaned_data = super().clean()
        for name in ('sub_county', 'parish'):
            if name in cleaned_data:
                cleaned_data[name] = normalize(cleaned_data[name])
        return cleaned_data


def merge_with_instance(instance: models.Model, fields: Sequence[str], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay posted ``data`` on the current values of ``instance``.

    Edits may post only the changed fields.  A ``QueryDict`` is flattened
    first so single values stay scalars and repeated keys become lists.
    """

    merged = model_to_dict(instance, fields=fields)
    if hasattr(data, 'lists'):
        data = {key: values[0] if len(values) == 1 else values for key, values in data.lists()}
    merged.update(data)
    return merged
