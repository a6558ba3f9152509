"""Views for the analytics and comparison dashboards.

Each endpoint reads the shared respondent filters (``district``,
``gender``, ``group``), fetches the matching rows once and hands them to
:mod:`tracker.services.aggregation`.  Filtering is done by the query, so
the charts never see excluded rows.

Clients changing filters quickly may receive responses out of order.
Every endpoint echoes the optional ``token`` query parameter back as
``request_token`` so the client can drop any response that is not for
its latest request.
"""

from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_http_methods

from .services import aggregation, exports
from .services.errors import OperationFailed
from .services.followups import fetch_followup_rows, load_comparison_detail
from .services.respondents import RespondentFilters, fetch_respondent_rows


def _with_token(request: HttpRequest, payload: Dict[str, Any]) -> Dict[str, Any]:
    payload['request_token'] = request.GET.get('token')
    return payload


def _error(request: HttpRequest, exc: OperationFailed) -> JsonResponse:
    return JsonResponse(_with_token(request, {'error': str(exc)}), status=400)


def _load(filters: RespondentFilters):
    """Fetch filtered respondents and the follow-ups that belong to them.

    Without any filter every follow-up is included, orphaned ones too.
    """

    respondents = fetch_respondent_rows(filters)
    if filters.district or filters.gender or filters.group or filters.search:
        followups = fetch_followup_rows([row['id'] for row in respondents])
    else:
        followups = fetch_followup_rows()
    return respondents, followups


@login_required
@require_http_methods(['GET'])
def analytics_data(request: HttpRequest) -> JsonResponse:
    filters = RespondentFilters.from_query(request.GET)
    try:
        rows = fetch_respondent_rows(filters)
    except OperationFailed as exc:
        return _error(request, exc)
    payload = aggregation.build_respondent_analytics(rows)
    payload['filters'] = filters.as_dict()
    return JsonResponse(_with_token(request, payload))


@login_required
@require_http_methods(['GET'])
def followup_analytics_data(request: HttpRequest) -> JsonResponse:
    filters = RespondentFilters.from_query(request.GET)
    try:
        respondents, followups = _load(filters)
    except OperationFailed as exc:
        return _error(request, exc)
    payload = aggregation.build_followup_analytics(respondents, followups)
    payload['filters'] = filters.as_dict()
    return JsonResponse(_with_token(request, payload))


@login_required
@require_http_methods(['GET'])
def comparison_data(request: HttpRequest) -> JsonResponse:
    filters = RespondentFilters.from_query(request.GET)
    try:
        respondents, followups = _load(filters)
    except OperationFailed as exc:
        return _error(request, exc)
    payload = aggregation.build_comparison(respondents, followups)
    payload['filters'] = filters.as_dict()
    return JsonResponse(_with_token(request, payload))


@login_required
@require_http_methods(['GET'])
def comparison_detail(request: HttpRequest, pk: int) -> JsonResponse:
    """One respondent's baseline answers next to every follow-up visit."""

    try:
        payload = load_comparison_detail(pk)
    except OperationFailed as exc:
        return _error(request, exc)
    if payload is None:
        raise Http404('Respondent not found.')
    return JsonResponse(_with_token(request, payload))


@login_required
@require_http_methods(['GET'])
def analytics_export(request: HttpRequest) -> HttpResponse:
    """Download the ``Metric, Category, Value`` summary as CSV."""

    filters = RespondentFilters.from_query(request.GET)
    try:
        rows = fetch_respondent_rows(filters)
    except OperationFailed as exc:
        return _error(request, exc)
    return exports.analytics_csv(aggregation.build_respondent_analytics(rows))
