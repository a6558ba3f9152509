"""JSON views for respondents, reference data and follow-up visits.

Every view requires a logged-in user and answers with JSON (or a file
download for exports).  Store failures arrive as
:class:`~tracker.services.errors.OperationFailed` and are returned as
``{"error": message}`` with status 400.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.urls import reverse
from django.views.decorators.http import require_http_methods, require_POST

from .models import Respondent
from .services import exports, reference
from .services.errors import OperationFailed
from .services.followups import (
    history_queryset,
    load_respondent_detail,
    serialize_followup,
    session_key,
    submit_followup,
)
from .services.pagination import paginate
from .services.questionnaire import QuestionnaireSession, Transition
from .services.respondent_import import import_respondents
from .services.respondents import (
    RespondentFilters,
    delete_respondent,
    fetch_respondent_rows,
    filter_options,
    filter_respondents,
    save_respondent,
    serialize_respondent,
)


def _request_data(request: HttpRequest) -> Mapping[str, Any]:
    """Return the posted fields from a JSON body or a regular form post."""

    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body.decode('utf-8') or '{}')
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise OperationFailed('Invalid JSON payload.') from exc
        if not isinstance(payload, dict):
            raise OperationFailed('Expected a JSON object.')
        return payload
    return request.POST


def _error(exc: OperationFailed, status: int = 400) -> JsonResponse:
    return JsonResponse({'error': str(exc)}, status=status)


# ---------------------------------------------------------------------------
# Respondents
# ---------------------------------------------------------------------------

@login_required
@require_http_methods(['GET', 'POST'])
def respondent_list(request: HttpRequest) -> JsonResponse:
    """List filtered respondents (GET) or create one (POST)."""

    if request.method == 'POST':
        try:
            respondent = save_respondent(_request_data(request), user=request.user)
        except OperationFailed as exc:
            return _error(exc)
        return JsonResponse({'respondent': serialize_respondent(respondent, detail=True)}, status=201)

    filters = RespondentFilters.from_query(request.GET)
    try:
        payload = paginate(
            filter_respondents(filters), request.GET.get('page'), serialize_respondent, label='Respondents'
        )
        payload['options'] = filter_options()
    except OperationFailed as exc:
        return _error(exc)
    payload['filters'] = filters.as_dict()
    return JsonResponse(payload)


@login_required
@require_http_methods(['GET'])
def respondent_detail(request: HttpRequest, pk: int) -> JsonResponse:
    try:
        payload = load_respondent_detail(pk)
    except OperationFailed as exc:
        return _error(exc)
    if payload is None:
        raise Http404('Respondent not found.')
    return JsonResponse(payload)


@login_required
@require_POST
def respondent_edit(request: HttpRequest, pk: int) -> JsonResponse:
    respondent = get_object_or_404(Respondent, pk=pk)
    try:
        respondent = save_respondent(_request_data(request), user=request.user, instance=respondent)
    except OperationFailed as exc:
        return _error(exc)
    return JsonResponse({'respondent': serialize_respondent(respondent, detail=True)})


@login_required
@require_POST
def respondent_delete(request: HttpRequest, pk: int) -> JsonResponse:
    respondent = get_object_or_404(Respondent, pk=pk)
    try:
        delete_respondent(respondent, user=request.user)
    except OperationFailed as exc:
        return _error(exc)
    return JsonResponse({'deleted': pk})


@login_required
@require_http_methods(['GET'])
def respondent_export(request: HttpRequest) -> HttpResponse:
    """Download the filtered respondents as CSV (default) or XLSX."""

    filters = RespondentFilters.from_query(request.GET)
    try:
        rows = fetch_respondent_rows(filters)
    except OperationFailed as exc:
        return _error(exc)
    if (request.GET.get('format') or 'csv').lower() == 'xlsx':
        return exports.respondents_xlsx(rows)
    return exports.respondents_csv(rows)


@login_required
@require_POST
def respondent_import(request: HttpRequest) -> JsonResponse:
    upload = request.FILES.get('file')
    if upload is None:
        return JsonResponse({'error': 'Attach an .xlsx or .csv file as "file".'}, status=400)
    dry_run = (request.POST.get('dry_run') or '').lower() in ('1', 'true', 'yes', 'on')
    try:
        stats = import_respondents(upload, upload.name, user=request.user, dry_run=dry_run)
    except OperationFailed as exc:
        return _error(exc)
    return JsonResponse({'stats': stats.as_dict(), 'dry_run': dry_run})


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

@login_required
@require_http_methods(['GET', 'POST'])
def reference_list(request: HttpRequest, kind: str) -> JsonResponse:
    try:
        if request.method == 'POST':
            row = reference.save_reference(kind, _request_data(request), user=request.user)
            return JsonResponse({'item': row}, status=201)
        return JsonResponse({'kind': kind, 'results': reference.list_reference(kind)})
    except OperationFailed as exc:
        return _error(exc)


@login_required
@require_POST
def reference_edit(request: HttpRequest, kind: str, pk: int) -> JsonResponse:
    try:
        table = reference.get_kind(kind)
    except OperationFailed as exc:
        return _error(exc, status=404)
    instance = get_object_or_404(table.model, pk=pk)
    try:
        row = reference.save_reference(kind, _request_data(request), instance=instance, user=request.user)
    except OperationFailed as exc:
        return _error(exc)
    return JsonResponse({'item': row})


@login_required
@require_POST
def reference_delete(request: HttpRequest, kind: str, pk: int) -> JsonResponse:
    try:
        reference.delete_reference(kind, pk, user=request.user)
    except OperationFailed as exc:
        return _error(exc)
    return JsonResponse({'deleted': pk})


# ---------------------------------------------------------------------------
# Follow-ups
# ---------------------------------------------------------------------------

@login_required
@require_http_methods(['GET'])
def followup_history(request: HttpRequest) -> JsonResponse:
    """Past visits, newest first, searchable by respondent or conductor."""

    search = request.GET.get('search') or request.GET.get('q') or ''
    try:
        payload = paginate(
            history_queryset(search), request.GET.get('page'), serialize_followup, label='Follow-ups'
        )
    except OperationFailed as exc:
        return _error(exc)
    payload['search'] = search
    return JsonResponse(payload)


@login_required
@require_http_methods(['GET', 'POST'])
def followup_questionnaire(request: HttpRequest, respondent_id: int) -> JsonResponse:
    """Drive the follow-up questionnaire for one respondent.

    POST ``action`` is one of ``answer`` (with ``value``), ``next``,
    ``back`` or ``reset``.  The state lives in the session until the
    visit is saved.
    """

    respondent = get_object_or_404(Respondent, pk=respondent_id)
    key = session_key(respondent.pk)
    session = QuestionnaireSession.from_state(request.session.get(key))

    def state_response(transition: Transition = Transition.STAYED) -> JsonResponse:
        request.session[key] = session.to_state()
        payload = session.describe()
        payload.update({'respondent': serialize_respondent(respondent), 'transition': transition.value})
        return JsonResponse(payload)

    if request.method == 'GET':
        return state_response()

    try:
        data = _request_data(request)
        action = (data.get('action') or '').strip().lower()
        if action == 'answer':
            value = request.POST.getlist('value') if data is request.POST else data.get('value')
            if data is request.POST and len(value) == 1:
                value = value[0]
            transition = session.answer(value)
        elif action == 'next':
            transition = session.advance()
        elif action == 'back':
            transition = session.back()
        elif action == 'reset':
            request.session.pop(key, None)
            session = QuestionnaireSession()
            transition = Transition.MOVED
        else:
            return JsonResponse({'error': 'Unknown action.'}, status=400)
    except OperationFailed as exc:
        request.session[key] = session.to_state()
        return _error(exc)

    if transition is not Transition.SUBMIT:
        return state_response(transition)

    try:
        followup = submit_followup(session, respondent, request.user)
    except OperationFailed as exc:
        request.session[key] = session.to_state()
        return _error(exc)
    request.session.pop(key, None)
    return JsonResponse(
        {
            'transition': transition.value,
            'followup': serialize_followup(followup),
            'redirect': reverse('followup_history'),
        },
        status=201,
    )
