"""Audit trail helper shared by the views and services."""

from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth.models import User
from django.db import DatabaseError

from ..models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(user: Optional[User], action: str, details: str = '') -> None:
    """Create a log entry recording the specified action.

    Args:
        user: The user who performed the action.  Anonymous users and
            command-line runs are stored without a user.
        action: A short description of the action (e.g., "Imported respondents").
        details: Optional additional information about the action.
    """

    if user is not None and not getattr(user, 'is_authenticated', False):
        user = None
    try:
        ActivityLog.objects.create(user=user, action=action, details=details)
    except DatabaseError:
        # The audit row is secondary to the action that already succeeded.
        logger.exception('Could not record activity %r', action)
    else:
        logger.info('%s: %s %s', getattr(user, 'username', 'system'), action, details)
