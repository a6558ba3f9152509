"""Application configuration for the tracker app.

The configuration is intentionally lightweight so Django can start without
touching the database; respondent imports live in the
``import_respondents`` management command.
"""

from __future__ import annotations

from django.apps import AppConfig


class TrackerConfig(AppConfig):
    """Custom AppConfig for the tracker application."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tracker'
    verbose_name = 'Value-Chain Tracker'
