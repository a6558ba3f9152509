"""End-to-end tests for the analytics and comparison endpoints."""

from __future__ import annotations

from datetime import date
from unittest import mock

from django.contrib.auth.models import User
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse

from tracker.models import Followup, Respondent


class AnalyticsAPITest(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(username='analyst', password='pass')
        self.client.force_login(self.user)
        self.first = Respondent.objects.create(
            respondent_name='Jane',
            district='kampala',
            gender='female',
            group_name='city growers',
            industry_involvement='Coffee, Tea',
            value_chain_role='farmer',
            household_size=5,
            business_challenges=['low prices'],
        )
        self.second = Respondent.objects.create(
            respondent_name='Amos',
            district='kampala',
            gender='male',
            group_name='city growers',
            industry_involvement='tea',
            value_chain_role='trader',
            has_business_training=True,
        )
        self.third = Respondent.objects.create(
            respondent_name='Sarah',
            district='mukono',
            gender='female',
            group_name='lakeside',
            industry_involvement='coffee',
            value_chain_role='farmer',
        )
        Followup.objects.create(
            respondent=self.first,
            conducted_by=self.user,
            visit_date=date(2024, 4, 1),
            attended_training=True,
            practice_frequency=4,
            group_progress=4,
            income_change=2,
            group_earnings=1,
            practices_applied=['Pruning'],
        )
        Followup.objects.create(
            respondent=self.third,
            conducted_by=self.user,
            visit_date=date(2024, 4, 2),
            attended_training=False,
        )

    def test_district_filter_is_applied_by_the_query(self) -> None:
        response = self.client.get(reverse('respondent_list'), {'district': 'Kampala'})
        self.assertEqual(response.status_code, 200)
        names = {row['respondent_name'] for row in response.json()['results']}
        self.assertEqual(names, {'Jane', 'Amos'})

        response = self.client.get(reverse('analytics_data'), {'district': 'Kampala'})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload['total_respondents'], 2)
        self.assertEqual(payload['geography']['districts'], [{'name': 'Kampala', 'value': 2}])

    def test_payload_contains_all_sections(self) -> None:
        payload = self.client.get(reverse('analytics_data')).json()
        for section in ['demographics', 'business', 'geography', 'technology']:
            self.assertIn(section, payload)
        self.assertEqual(payload['coffee_farmers'], 2)
        self.assertEqual(payload['tea_farmers'], 1)
        self.assertEqual(
            {item['name']: item['value'] for item in payload['business']['industry_summary']},
            {'Coffee': 2, 'Tea': 2},
        )
        self.assertEqual(payload['filters'], {'district': 'all', 'gender': 'all', 'group': 'all', 'search': ''})

    def test_request_token_is_echoed(self) -> None:
        for name in ('analytics_data', 'followup_analytics_data', 'comparison_data'):
            response = self.client.get(reverse(name), {'token': '42'})
            self.assertEqual(response.json()['request_token'], '42', name)
        response = self.client.get(reverse('analytics_data'))
        self.assertIsNone(response.json()['request_token'])

    def test_followup_analytics_follow_respondent_filters(self) -> None:
        response = self.client.get(reverse('followup_analytics_data'), {'district': 'mukono'})
        payload = response.json()
        self.assertEqual(payload['summary']['total_respondents'], 1)
        self.assertEqual(payload['summary']['total_followups'], 1)
        self.assertEqual(payload['summary']['new_members'], 1)

        payload = self.client.get(reverse('followup_analytics_data')).json()
        self.assertEqual(payload['summary']['total_followups'], 2)
        self.assertEqual(payload['group_progress'][0]['name'], 'City Growers')
        self.assertEqual(payload['income_changes'][0]['value'], 2)

    def test_gender_and_group_filters_are_case_insensitive(self) -> None:
        payload = self.client.get(reverse('analytics_data'), {'gender': 'FEMALE', 'group': 'City'}).json()
        self.assertEqual(payload['total_respondents'], 1)

    def test_gender_filter_does_not_match_substrings(self) -> None:
        payload = self.client.get(reverse('analytics_data'), {'gender': 'male'}).json()
        self.assertEqual(payload['total_respondents'], 1)
        self.assertEqual(payload['demographics']['gender'], [{'name': 'Male', 'value': 1}])

    def test_comparison(self) -> None:
        payload = self.client.get(reverse('comparison_data')).json()
        self.assertEqual(payload['total_respondents'], 3)
        self.assertEqual(payload['respondents_with_followups'], 2)
        self.assertEqual(payload['training'], [{'name': 'Business Training', 'original': 1, 'followup': 1}])

    def test_comparison_detail(self) -> None:
        response = self.client.get(reverse('comparison_detail', args=[self.first.pk]))
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload['respondent']['respondent_name'], 'Jane')
        self.assertEqual(len(payload['followups']), 1)
        self.assertEqual(payload['changes'][0], {'name': 'Business Training', 'original': False, 'followup': True})

        response = self.client.get(reverse('comparison_detail', args=[9999]))
        self.assertEqual(response.status_code, 404)

    def test_comparison_detail_database_failure_returns_error(self) -> None:
        with mock.patch.object(Respondent.objects, 'filter', side_effect=DatabaseError('boom')):
            response = self.client.get(reverse('comparison_detail', args=[self.first.pk]), {'token': '7'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Comparison data could not be loaded.', 'request_token': '7'})

    def test_analytics_export(self) -> None:
        response = self.client.get(reverse('analytics_export'), {'district': 'kampala'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/csv; charset=utf-8')
        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff"Metric","Category","Value"'))
        self.assertIn('"Total Respondents","","2"', content)
        self.assertIn('"District","Kampala","2"', content)

    def test_requires_login(self) -> None:
        self.client.logout()
        response = self.client.get(reverse('analytics_data'))
        self.assertEqual(response.status_code, 302)
