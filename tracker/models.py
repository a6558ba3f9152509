"""Data models for the Value-Chain Tracker application.

This module defines the database schema using Django's ORM: reference
tables (districts, groups, industries, locations), baseline survey
respondents, follow-up visits and the supporting profile and activity log
tables.  Free-text category values are stored normalised (trimmed and
lower-cased) and title-cased only when displayed.
"""

from __future__ import annotations

from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone

from .services.text import to_title_case


class Profile(models.Model):
    """Additional information associated with a Django auth User.

    The ``full_name`` is the label shown as the conductor of a follow-up
    visit in the history listing.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    register_date = models.DateField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover
        return f"Profile of {self.user.username}"


class ActivityLog(models.Model):
    """Tracks user actions within the application.

    Each entry records the user who performed the action, a short
    description and optional details.  Rows are written for every
    create, update, delete, import and follow-up submission.
    """

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='activity_logs')
    action = models.CharField(max_length=255)
    details = models.TextField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} - {self.user}: {self.action}"


class District(models.Model):
    """A district in which respondents live and groups operate."""

    name = models.CharField(max_length=100, unique=True)

    class Meta:
        ordering = ['name']

    @property
    def display_name(self) -> str:
        return to_title_case(self.name)

    def __str__(self) -> str:  # pragma: no cover
        return self.display_name


class Group(models.Model):
    """A farmer group, optionally tied to a district."""

    name = models.CharField(max_length=150, unique=True)
    district = models.ForeignKey(
        District,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='groups',
    )

    class Meta:
        ordering = ['name']

    @property
    def display_name(self) -> str:
        return to_title_case(self.name)

    def __str__(self) -> str:  # pragma: no cover
        return self.display_name


class Industry(models.Model):
    """An industry a respondent can be involved in (coffee, tea, ...)."""

    name = models.CharField(max_length=100, unique=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'industries'

    @property
    def display_name(self) -> str:
        return to_title_case(self.name)

    def __str__(self) -> str:  # pragma: no cover
        return self.display_name


class Location(models.Model):
    """A sub-county/parish pair within a district."""

    district = models.ForeignKey(
        District,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='locations',
    )
    sub_county = models.CharField(max_length=100)
    parish = models.CharField(max_length=100)

    class Meta:
        ordering = ['sub_county', 'parish']
        constraints = [
            models.UniqueConstraint(
                fields=['district', 'sub_county', 'parish'],
                name='unique_location_per_district',
            )
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{to_title_case(self.sub_county)} / {to_title_case(self.parish)}"


class Respondent(models.Model):
    """A baseline survey record for one value-chain participant.

    Category fields are stored through ``normalize`` by the form and the
    importer.  ``industry_involvement`` keeps the raw comma-separated text
    as captured in the field; ``industries`` links the parsed tokens to
    the reference table.  Challenge columns hold JSON lists of strings.
    """

    respondent_name = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    district = models.CharField(max_length=100, blank=True)
    sub_county = models.CharField(max_length=100, blank=True)
    parish = models.CharField(max_length=100, blank=True)

    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    education_level = models.CharField(max_length=100, blank=True)
    marital_status = models.CharField(max_length=50, blank=True)
    has_disability = models.BooleanField(default=False)
    occupation = models.CharField(max_length=100, blank=True)
    household_size = models.PositiveIntegerField(null=True, blank=True)

    industry_involvement = models.CharField(max_length=255, blank=True)
    industries = models.ManyToManyField(
        Industry,
        through='RespondentIndustry',
        related_name='respondents',
        blank=True,
    )
    value_chain_role = models.CharField(max_length=100, blank=True)
    value_chain_stage = models.CharField(max_length=100, blank=True)
    other_economic_activities = models.TextField(blank=True)

    has_business_training = models.BooleanField(default=False)
    is_business_registered = models.BooleanField(default=False)
    has_financial_access = models.BooleanField(default=False)
    uses_technology = models.BooleanField(default=False)

    business_challenges = models.JSONField(default=list, blank=True)
    financial_challenges = models.JSONField(default=list, blank=True)
    market_challenges = models.JSONField(default=list, blank=True)
    technology_barriers = models.JSONField(default=list, blank=True)
    business_future_plans = models.JSONField(default=list, blank=True)
    support_needed = models.TextField(blank=True)

    group_name = models.CharField(max_length=150, blank=True)
    group = models.ForeignKey(
        Group,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='respondents',
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['district'], name='respondent_district_idx'),
            models.Index(fields=['group_name'], name='respondent_group_name_idx'),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.respondent_name or f"Respondent {self.pk}"


class RespondentIndustry(models.Model):
    """Join table mapping many industries to one respondent."""

    respondent = models.ForeignKey(Respondent, on_delete=models.CASCADE, related_name='industry_links')
    industry = models.ForeignKey(Industry, on_delete=models.CASCADE, related_name='respondent_links')

    class Meta:
        unique_together = ('respondent', 'industry')

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.respondent_id}:{self.industry_id}"


class Followup(models.Model):
    """One follow-up visit to a respondent.

    Every answer column is nullable: when the respondent did not attend
    training the questionnaire skips the training-dependent questions and
    those columns stay ``NULL``.  Deleting the respondent leaves the visit
    in place with ``respondent`` cleared.
    """

    respondent = models.ForeignKey(
        Respondent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='followups',
    )
    conducted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='conducted_followups',
    )
    visit_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)

    attended_training = models.BooleanField(null=True, blank=True)
    practices_applied = models.JSONField(null=True, blank=True)
    practice_frequency = models.PositiveSmallIntegerField(null=True, blank=True)
    practice_results = models.JSONField(null=True, blank=True)
    group_progress = models.PositiveSmallIntegerField(null=True, blank=True)
    income_change = models.SmallIntegerField(null=True, blank=True)
    group_earnings = models.SmallIntegerField(null=True, blank=True)
    low_interest_areas = models.JSONField(null=True, blank=True)
    support_gaps = models.JSONField(null=True, blank=True)

    mentor_knowledge = models.PositiveSmallIntegerField(null=True, blank=True)
    mentor_communication = models.PositiveSmallIntegerField(null=True, blank=True)
    mentor_punctuality = models.PositiveSmallIntegerField(null=True, blank=True)
    mentor_engagement = models.PositiveSmallIntegerField(null=True, blank=True)
    mentor_practicality = models.PositiveSmallIntegerField(null=True, blank=True)
    mentor_overall = models.PositiveSmallIntegerField(null=True, blank=True)

    do_better = models.TextField(null=True, blank=True)
    example_use = models.TextField(null=True, blank=True)
    current_challenges = models.JSONField(null=True, blank=True)
    future_interests = models.JSONField(null=True, blank=True)
    general_feedback = models.TextField(null=True, blank=True)
    governance_steps = models.JSONField(null=True, blank=True)
    new_markets = models.PositiveSmallIntegerField(null=True, blank=True)
    quality_steps = models.PositiveSmallIntegerField(null=True, blank=True)

    class Meta:
        ordering = ['-visit_date', '-created_at']

    def __str__(self) -> str:  # pragma: no cover
        return f"Followup {self.pk} for respondent {self.respondent_id}"
