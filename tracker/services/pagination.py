"""Page a queryset into serialised rows plus pagination metadata."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.core.paginator import EmptyPage, Page, PageNotAnInteger, Paginator
from django.db import DatabaseError

from .errors import OperationFailed

logger = logging.getLogger(__name__)


def _page(paginator: Paginator, page_number: Any) -> Page:
    try:
        return paginator.page(page_number)
    except PageNotAnInteger:
        return paginator.page(1)
    except EmptyPage:
        return paginator.page(paginator.num_pages)


def paginate(
    object_list,
    page_number: Any,
    serialize: Callable[[Any], Dict[str, Any]],
    label: str = 'Records',
    per_page: Optional[int] = None,
) -> Dict[str, Any]:
    """Return ``{"results": [...], "pagination": {...}}`` for one page.

    Non-numeric page numbers fall back to the first page and numbers past
    the end to the last one.  The queries run here, so a database failure
    is raised as :class:`OperationFailed`.
    """

    paginator = Paginator(object_list, per_page or settings.TRACKER_PAGE_SIZE)
    try:
        page = _page(paginator, page_number)
        results = [serialize(obj) for obj in page.object_list]
    except DatabaseError as exc:
        logger.exception('Loading page %s of %s failed', page_number, label.lower())
        raise OperationFailed(f'{label} could not be loaded.') from exc
    return {
        'results': results,
        'pagination': {
            'page': page.number,
            'num_pages': paginator.num_pages,
            'count': paginator.count,
            'page_size': paginator.per_page,
        },
    }
