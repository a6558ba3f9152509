"""Follow-up store: submitting questionnaires, listing past visits and
loading one respondent's visits for the detail and comparison pages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.contrib.auth.models import User
from django.db import DatabaseError, transaction
from django.db.models import Q, QuerySet

from ..models import Followup, Respondent
from .activity import log_activity
from .aggregation import EARNINGS_LABELS, INCOME_LABELS
from .errors import OperationFailed
from .questionnaire import QuestionnaireSession
from .respondents import serialize_respondent
from .text import normalize, or_default, to_title_case

logger = logging.getLogger(__name__)

SESSION_KEY_TEMPLATE = 'followup:{respondent_id}'


def session_key(respondent_id: int) -> str:
    return SESSION_KEY_TEMPLATE.format(respondent_id=respondent_id)


def submit_followup(session: QuestionnaireSession, respondent: Respondent, user: Optional[User]) -> Followup:
    """Insert one follow-up row built from the questionnaire answers.

    The insert is atomic; on failure nothing is written and
    :class:`OperationFailed` is raised so the caller can keep the
    questionnaire state for a manual retry.
    """

    record = session.to_record()
    conducted_by = user if user is not None and user.is_authenticated else None
    try:
        with transaction.atomic():
            followup = Followup.objects.create(respondent=respondent, conducted_by=conducted_by, **record)
    except DatabaseError as exc:
        logger.exception('Follow-up submission failed for respondent %s', respondent.pk)
        raise OperationFailed('The follow-up could not be saved. Please try again.') from exc
    log_activity(
        conducted_by,
        'Submitted follow-up',
        f'respondent={respondent.pk} attended={record.get("attended_training")}',
    )
    return followup


def history_queryset(search: str = '') -> QuerySet:
    """Follow-ups joined to respondent and conductor, newest visit first."""

    qs = Followup.objects.select_related('respondent', 'conducted_by', 'conducted_by__profile').order_by(
        '-visit_date', '-created_at'
    )
    term = normalize(search)
    if term:
        qs = qs.filter(
            Q(respondent__respondent_name__icontains=term)
            | Q(respondent__district__icontains=term)
            | Q(respondent__group_name__icontains=term)
            | Q(conducted_by__profile__full_name__icontains=term)
            | Q(conducted_by__username__icontains=term)
        )
    return qs


def _conductor_label(followup: Followup) -> str:
    user = followup.conducted_by
    if user is None:
        return 'Unknown'
    profile = getattr(user, 'profile', None)
    if profile is not None and profile.full_name:
        return profile.full_name
    return user.get_full_name() or user.username


def serialize_followup(followup: Followup) -> Dict[str, Any]:
    respondent = followup.respondent
    return {
        'id': followup.pk,
        'visit_date': followup.visit_date.isoformat() if followup.visit_date else None,
        'respondent_id': followup.respondent_id,
        'respondent_name': or_default(respondent.respondent_name, 'N/A') if respondent else 'Deleted respondent',
        'district': to_title_case(respondent.district) if respondent else '',
        'group_name': to_title_case(respondent.group_name) if respondent else '',
        'conducted_by': _conductor_label(followup),
        'attended_training': followup.attended_training,
        'practice_frequency': followup.practice_frequency,
        'group_progress': followup.group_progress,
        'income_change': followup.income_change,
        'group_earnings': followup.group_earnings,
        'general_feedback': followup.general_feedback,
    }


def fetch_followup_rows(respondent_ids: Optional[List[int]] = None) -> List[Dict[str, Any]]:
    """Return follow-up rows for aggregation, carrying the parent's group."""

    qs = Followup.objects.all()
    if respondent_ids is not None:
        qs = qs.filter(respondent_id__in=respondent_ids)
    try:
        return list(
            qs.values(
                'id',
                'respondent_id',
                'respondent__group_name',
                'visit_date',
                'created_at',
                'attended_training',
                'practices_applied',
                'practice_frequency',
                'practice_results',
                'group_progress',
                'income_change',
                'group_earnings',
            )
        )
    except DatabaseError as exc:
        logger.exception('Fetching follow-ups failed')
        raise OperationFailed('Follow-up data could not be loaded.') from exc


def _visits(respondent: Respondent) -> QuerySet:
    return respondent.followups.select_related('conducted_by', 'conducted_by__profile')


def load_respondent_detail(pk: int) -> Optional[Dict[str, Any]]:
    """One respondent with its follow-ups, or ``None`` when it does not exist."""

    try:
        respondent = Respondent.objects.filter(pk=pk).first()
        if respondent is None:
            return None
        return {
            'respondent': serialize_respondent(respondent, detail=True),
            'followups': [serialize_followup(visit) for visit in _visits(respondent)],
        }
    except DatabaseError as exc:
        logger.exception('Loading respondent %s failed', pk)
        raise OperationFailed('Respondent data could not be loaded.') from exc


def _changes(respondent: Respondent, latest: Followup) -> List[Dict[str, Any]]:
    changes = [
        {
            'name': 'Business Training',
            'original': respondent.has_business_training,
            'followup': bool(latest.attended_training),
        }
    ]
    if latest.income_change is not None:
        changes.append(
            {'name': 'Income Change', 'original': None, 'followup': INCOME_LABELS.get(latest.income_change)}
        )
    if latest.group_earnings is not None:
        changes.append(
            {'name': 'Group Earnings', 'original': None, 'followup': EARNINGS_LABELS.get(latest.group_earnings)}
        )
    return changes


def load_comparison_detail(pk: int) -> Optional[Dict[str, Any]]:
    """Baseline answers next to every visit, oldest first, plus the latest changes."""

    try:
        respondent = Respondent.objects.filter(pk=pk).first()
        if respondent is None:
            return None
        visits = list(_visits(respondent).order_by('visit_date', 'created_at'))
        return {
            'respondent': serialize_respondent(respondent, detail=True),
            'followups': [serialize_followup(visit) for visit in visits],
            'changes': _changes(respondent, visits[-1]) if visits else [],
        }
    except DatabaseError as exc:
        logger.exception('Loading comparison for respondent %s failed', pk)
        raise OperationFailed('Comparison data could not be loaded.') from exc
