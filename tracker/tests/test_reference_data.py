"""Reference tables: normalised storage, duplicates and row editing."""

from __future__ import annotations

import json

from django.contrib.auth.models import User
from django.test import TestCase
from django.urls import reverse

from tracker.models import ActivityLog, District, Group, Industry, Location, Respondent, RespondentIndustry


class ReferenceDataTests(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(username='admin-user', password='pass')
        self.client.force_login(self.user)

    def post_json(self, url: str, payload: dict):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def test_district_is_stored_normalised_and_shown_title_cased(self) -> None:
        response = self.post_json(reverse('reference_list', args=['districts']), {'name': ' Mbale '})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['item']['name'], 'Mbale')
        self.assertEqual(District.objects.get().name, 'mbale')
        self.assertTrue(ActivityLog.objects.filter(action='Created district').exists())

        response = self.client.get(reverse('reference_list', args=['districts']))
        self.assertEqual(response.json()['results'], [{'id': District.objects.get().pk, 'name': 'Mbale'}])

    def test_duplicate_name_is_rejected(self) -> None:
        District.objects.create(name='mbale')
        response = self.post_json(reverse('reference_list', args=['districts']), {'name': 'MBALE'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())
        self.assertEqual(District.objects.count(), 1)

    def test_blank_name_is_rejected(self) -> None:
        response = self.post_json(reverse('reference_list', args=['industries']), {'name': '   '})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Industry.objects.exists())

    def test_edit_and_delete(self) -> None:
        district = District.objects.create(name='mbale')
        group = Group.objects.create(name='bugisu growers', district=district)

        response = self.post_json(reverse('reference_edit', args=['groups', group.pk]), {'name': 'Bugisu Coffee Growers'})
        self.assertEqual(response.status_code, 200)
        item = response.json()['item']
        self.assertEqual(item['name'], 'Bugisu Coffee Growers')
        self.assertEqual(item['district'], 'Mbale')

        response = self.client.post(reverse('reference_delete', args=['groups', group.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Group.objects.exists())

        response = self.client.post(reverse('reference_delete', args=['groups', group.pk]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Group not found.')

    def test_form_encoded_edit_stores_plain_values(self) -> None:
        district = District.objects.create(name='mbale')
        group = Group.objects.create(name='bugisu growers', district=district)

        response = self.client.post(reverse('reference_edit', args=['districts', district.pk]), {'name': 'Kampala'})
        self.assertEqual(response.status_code, 200)
        district.refresh_from_db()
        self.assertEqual(district.name, 'kampala')

        response = self.client.post(reverse('reference_edit', args=['groups', group.pk]), {'name': 'Lakeside'})
        self.assertEqual(response.status_code, 200)
        group.refresh_from_db()
        self.assertEqual(group.name, 'lakeside')
        self.assertEqual(group.district, district)

    def test_edit_missing_row_is_404(self) -> None:
        response = self.post_json(reverse('reference_edit', args=['districts', 999]), {'name': 'Jinja'})
        self.assertEqual(response.status_code, 404)

    def test_unknown_kind(self) -> None:
        response = self.client.get(reverse('reference_list', args=['planets']))
        self.assertEqual(response.status_code, 400)
        response = self.post_json(reverse('reference_edit', args=['planets', 1]), {'name': 'Mars'})
        self.assertEqual(response.status_code, 404)

    def test_location_fields_are_normalised(self) -> None:
        district = District.objects.create(name='mbale')
        response = self.post_json(
            reverse('reference_list', args=['locations']),
            {'district': district.pk, 'sub_county': ' Bungokho ', 'parish': 'BUMAGENI'},
        )
        self.assertEqual(response.status_code, 201)
        location = Location.objects.get()
        self.assertEqual((location.sub_county, location.parish), ('bungokho', 'bumageni'))
        self.assertEqual(response.json()['item']['sub_county'], 'Bungokho')
        self.assertEqual(response.json()['item']['district'], 'Mbale')

    def test_industry_listing_counts_respondents(self) -> None:
        coffee = Industry.objects.create(name='coffee')
        Industry.objects.create(name='tea')
        respondent = Respondent.objects.create(respondent_name='Jane', industry_involvement='coffee')
        RespondentIndustry.objects.create(respondent=respondent, industry=coffee)

        results = self.client.get(reverse('reference_list', args=['industries'])).json()['results']
        self.assertEqual([(row['name'], row['respondents']) for row in results], [('Coffee', 1), ('Tea', 0)])

    def test_requires_login(self) -> None:
        self.client.logout()
        response = self.client.get(reverse('reference_list', args=['districts']))
        self.assertEqual(response.status_code, 302)
