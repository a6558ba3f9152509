"""Initial schema for the tracker app.

Creates the reference tables (districts, groups, industries, locations),
baseline respondents with their industry join table, follow-up visits and
the supporting profile and activity log tables.
"""

from __future__ import annotations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='District',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Industry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
            ],
            options={
                'ordering': ['name'],
                'verbose_name_plural': 'industries',
            },
        ),
        migrations.CreateModel(
            name='Group',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, unique=True)),
                ('district', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='groups', to='tracker.district')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sub_county', models.CharField(max_length=100)),
                ('parish', models.CharField(max_length=100)),
                ('district', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locations', to='tracker.district')),
            ],
            options={
                'ordering': ['sub_county', 'parish'],
            },
        ),
        migrations.AddConstraint(
            model_name='location',
            constraint=models.UniqueConstraint(fields=('district', 'sub_county', 'parish'), name='unique_location_per_district'),
        ),
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(blank=True, max_length=255)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('register_date', models.DateField(auto_now_add=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=255)),
                ('details', models.TextField(blank=True, null=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activity_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-timestamp'],
            },
        ),
        migrations.CreateModel(
            name='Respondent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('respondent_name', models.CharField(blank=True, max_length=255)),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('district', models.CharField(blank=True, max_length=100)),
                ('sub_county', models.CharField(blank=True, max_length=100)),
                ('parish', models.CharField(blank=True, max_length=100)),
                ('age', models.PositiveIntegerField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, max_length=20)),
                ('education_level', models.CharField(blank=True, max_length=100)),
                ('marital_status', models.CharField(blank=True, max_length=50)),
                ('has_disability', models.BooleanField(default=False)),
                ('occupation', models.CharField(blank=True, max_length=100)),
                ('household_size', models.PositiveIntegerField(blank=True, null=True)),
                ('industry_involvement', models.CharField(blank=True, max_length=255)),
                ('value_chain_role', models.CharField(blank=True, max_length=100)),
                ('value_chain_stage', models.CharField(blank=True, max_length=100)),
                ('other_economic_activities', models.TextField(blank=True)),
                ('has_business_training', models.BooleanField(default=False)),
                ('is_business_registered', models.BooleanField(default=False)),
                ('has_financial_access', models.BooleanField(default=False)),
                ('uses_technology', models.BooleanField(default=False)),
                ('business_challenges', models.JSONField(blank=True, default=list)),
                ('financial_challenges', models.JSONField(blank=True, default=list)),
                ('market_challenges', models.JSONField(blank=True, default=list)),
                ('technology_barriers', models.JSONField(blank=True, default=list)),
                ('business_future_plans', models.JSONField(blank=True, default=list)),
                ('support_needed', models.TextField(blank=True)),
                ('group_name', models.CharField(blank=True, max_length=150)),
                ('group', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='respondents', to='tracker.group')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='respondent',
            index=models.Index(fields=['district'], name='respondent_district_idx'),
        ),
        migrations.AddIndex(
            model_name='respondent',
            index=models.Index(fields=['group_name'], name='respondent_group_name_idx'),
        ),
        migrations.CreateModel(
            name='RespondentIndustry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('industry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='respondent_links', to='tracker.industry')),
                ('respondent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='industry_links', to='tracker.respondent')),
            ],
            options={
                'unique_together': {('respondent', 'industry')},
            },
        ),
        migrations.AddField(
            model_name='respondent',
            name='industries',
            field=models.ManyToManyField(blank=True, related_name='respondents', through='tracker.RespondentIndustry', to='tracker.industry'),
        ),
        migrations.CreateModel(
            name='Followup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('visit_date', models.DateField(default=django.utils.timezone.localdate)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('attended_training', models.BooleanField(blank=True, null=True)),
                ('practices_applied', models.JSONField(blank=True, null=True)),
                ('practice_frequency', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('practice_results', models.JSONField(blank=True, null=True)),
                ('group_progress', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('income_change', models.SmallIntegerField(blank=True, null=True)),
                ('group_earnings', models.SmallIntegerField(blank=True, null=True)),
                ('low_interest_areas', models.JSONField(blank=True, null=True)),
                ('support_gaps', models.JSONField(blank=True, null=True)),
                ('mentor_knowledge', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('mentor_communication', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('mentor_punctuality', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('mentor_engagement', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('mentor_practicality', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('mentor_overall', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('do_better', models.TextField(blank=True, null=True)),
                ('example_use', models.TextField(blank=True, null=True)),
                ('current_challenges', models.JSONField(blank=True, null=True)),
                ('future_interests', models.JSONField(blank=True, null=True)),
                ('general_feedback', models.TextField(blank=True, null=True)),
                ('governance_steps', models.JSONField(blank=True, null=True)),
                ('new_markets', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('quality_steps', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('conducted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='conducted_followups', to=settings.AUTH_USER_MODEL)),
                ('respondent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='followups', to='tracker.respondent')),
            ],
            options={
                'ordering': ['-visit_date', '-created_at'],
            },
        ),
    ]
