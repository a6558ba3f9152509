"""Tests for the chart aggregation helpers."""

from __future__ import annotations

from datetime import date

from django.test import SimpleTestCase

from tracker.services.aggregation import (
    COLORS,
    EARNINGS_LABELS,
    INCOME_LABELS,
    IndustryMembership,
    age_group,
    analytics_export_rows,
    build_comparison,
    build_followup_analytics,
    build_respondent_analytics,
    categorical_count,
    challenge_flow,
    grouped_average,
    industry_label,
    industry_tally,
    multi_valued_tally,
    parse_industry_involvement,
    percentage,
    round_half_up,
    sort_by_value,
    top_n,
)


def as_dict(items):
    return {item['name']: item['value'] for item in items}


class CategoricalCountTests(SimpleTestCase):
    def test_normalised_values_share_a_bucket_and_missing_is_unknown(self) -> None:
        rows = [{'gender': 'Female'}, {'gender': 'female'}, {'gender': None}]
        self.assertEqual(as_dict(categorical_count(rows, 'gender')), {'Female': 2, 'Unknown': 1})

    def test_blank_strings_count_as_unknown(self) -> None:
        rows = [{'district': '  '}, {}, {'district': 'mbale'}]
        self.assertEqual(categorical_count(rows, 'district'), [
            {'name': 'Unknown', 'value': 2},
            {'name': 'Mbale', 'value': 1},
        ])

    def test_keeps_first_seen_order(self) -> None:
        rows = [{'district': 'mukono'}, {'district': 'kampala'}, {'district': 'kampala'}]
        self.assertEqual([item['name'] for item in categorical_count(rows, 'district')], ['Mukono', 'Kampala'])

    def test_sort_and_top_n(self) -> None:
        items = [{'name': 'a', 'value': 1}, {'name': 'b', 'value': 3}, {'name': 'c', 'value': 1}]
        self.assertEqual([item['name'] for item in sort_by_value(items)], ['b', 'a', 'c'])
        self.assertEqual(top_n(items, 2), [{'name': 'b', 'value': 3}, {'name': 'a', 'value': 1}])


class GroupedAverageTests(SimpleTestCase):
    rows = [
        {'group': 'alpha', 'score': 1},
        {'group': 'alpha', 'score': 2},
        {'group': 'beta', 'score': None},
        {'group': 'beta', 'score': -1},
        {'group': 'gamma', 'score': None},
    ]

    def test_fractional_average_skips_missing_values(self) -> None:
        result = grouped_average(self.rows, lambda row: row['group'], 'score')
        self.assertEqual(result, [{'name': 'alpha', 'value': 1.5}, {'name': 'beta', 'value': -1.0}])

    def test_whole_average_rounds_half_up(self) -> None:
        result = grouped_average(self.rows, lambda row: row['group'], 'score', whole=True)
        self.assertEqual(as_dict(result), {'alpha': 2, 'beta': -1})

    def test_round_half_up_matches_chart_rounding(self) -> None:
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(-0.5), 0)
        self.assertEqual(round_half_up(-1.5), -1)
        self.assertEqual(round_half_up(1.49), 1)


class MultiValuedTallyTests(SimpleTestCase):
    def test_one_row_counts_towards_many_buckets(self) -> None:
        rows = [
            {'practices_applied': ['pruning', 'mulching']},
            {'practices_applied': ['Pruning']},
            {'practices_applied': None},
        ]
        self.assertEqual(as_dict(multi_valued_tally(rows, 'practices_applied')), {'Pruning': 2, 'Mulching': 1})

    def test_tallies_across_several_fields(self) -> None:
        rows = [{'a': ['x'], 'b': ['x', 'y']}]
        self.assertEqual(as_dict(multi_valued_tally(rows, 'a', 'b')), {'X': 2, 'Y': 1})


class ChallengeFlowTests(SimpleTestCase):
    def test_tag_nodes_follow_group_nodes(self) -> None:
        rows = [
            {'group_name': 'alpha', 'business_challenges': ['low prices', 'pests']},
            {'group_name': 'beta', 'business_challenges': ['pests'], 'market_challenges': ['poor roads', 'other']},
            {'group_name': '', 'business_challenges': ['ignored']},
            {'group_name': 'gamma', 'business_challenges': ['Other']},
        ]
        flow = challenge_flow(rows)

        self.assertEqual(
            [node['name'] for node in flow['nodes']],
            ['Alpha', 'Beta', 'Low Prices', 'Pests', 'Poor Roads'],
        )
        for link in flow['links']:
            self.assertIn(link['source'], {0, 1})
            self.assertIn(link['target'], {2, 3, 4})
        self.assertEqual(
            {(link['source'], link['target']): link['value'] for link in flow['links']},
            {(0, 2): 1, (0, 3): 1, (1, 3): 1, (1, 4): 1},
        )

    def test_repeated_tags_increment_the_link(self) -> None:
        rows = [
            {'group_name': 'alpha', 'business_challenges': ['pests'], 'financial_challenges': ['pests']},
            {'group_name': 'Alpha', 'market_challenges': ['pests']},
        ]
        flow = challenge_flow(rows)
        self.assertEqual(flow['links'], [{'source': 0, 'target': 1, 'value': 3}])


class PercentageTests(SimpleTestCase):
    def test_zero_total_is_guarded(self) -> None:
        self.assertEqual(percentage(0, 0), 0.0)
        self.assertEqual(percentage(1, 4), 25.0)

    def test_no_processing_respondents_gives_zero(self) -> None:
        payload = build_respondent_analytics([{'value_chain_stage': 'production', 'industry_involvement': 'tea'}])
        self.assertEqual(payload['business']['processing_tea_stats'], {'count': 0, 'percentage': 0.0})

    def test_processing_tea_share(self) -> None:
        rows = [
            {'value_chain_stage': 'processing', 'industry_involvement': 'Tea'},
            {'value_chain_stage': 'Processing', 'industry_involvement': 'coffee'},
        ]
        stats = build_respondent_analytics(rows)['business']['processing_tea_stats']
        self.assertEqual(stats, {'count': 2, 'percentage': 50.0})


class IndustryParsingTests(SimpleTestCase):
    def test_both_crops_are_counted_independently(self) -> None:
        membership = parse_industry_involvement('Coffee, Tea')
        self.assertEqual(membership, IndustryMembership(frozenset({'coffee', 'tea'}), ()))
        self.assertEqual(industry_label(membership), 'Coffee + Tea')

        tally = industry_tally([{'industry_involvement': 'Coffee, Tea'}])
        self.assertEqual(as_dict(tally['summary']), {'Coffee': 1, 'Tea': 1})
        self.assertEqual(as_dict(tally['detail']), {'Coffee + Tea': 1})

    def test_empty_input_only_counts_unknown(self) -> None:
        tally = industry_tally([{'industry_involvement': ''}, {'industry_involvement': None}])
        self.assertEqual(as_dict(tally['summary']), {'Coffee': 0, 'Tea': 0})
        self.assertEqual(as_dict(tally['detail']), {'Unknown': 2})

    def test_unmatched_tokens_are_kept(self) -> None:
        membership = parse_industry_involvement(' tea , cocoa beans, COFFEE')
        self.assertEqual(membership.matched, frozenset({'coffee', 'tea'}))
        self.assertEqual(membership.other, ('cocoa beans',))
        self.assertEqual(industry_label(membership), 'Coffee + Tea + Cocoa Beans')


class AgeGroupTests(SimpleTestCase):
    def test_buckets(self) -> None:
        self.assertEqual(age_group(None), 'Unknown')
        self.assertEqual(age_group(0), 'Unknown')
        self.assertEqual(age_group('abc'), 'Unknown')
        self.assertEqual(age_group(19), '18-24')
        self.assertEqual(age_group(25), '25-34')
        self.assertEqual(age_group(44), '35-44')
        self.assertEqual(age_group(54), '45-54')
        self.assertEqual(age_group(70), '55+')


class RespondentAnalyticsTests(SimpleTestCase):
    def setUp(self) -> None:
        self.rows = [
            {
                'gender': 'female',
                'district': 'mbale',
                'sub_county': 'bungokho',
                'age': 30,
                'value_chain_role': 'farmer',
                'industry_involvement': 'coffee',
                'group_name': 'bugisu growers',
                'business_challenges': ['low prices', 'other'],
                'uses_technology': True,
                'technology_barriers': ['cost'],
            },
            {
                'gender': 'male',
                'district': 'mbale',
                'age': 60,
                'value_chain_role': 'Tea Farmer',
                'industry_involvement': 'tea',
                'group_name': '',
                'business_challenges': ['poor roads'],
                'uses_technology': False,
                'technology_barriers': ['cost', 'skills'],
            },
        ]

    def test_headline_counts(self) -> None:
        payload = build_respondent_analytics(self.rows)
        self.assertEqual(payload['total_respondents'], 2)
        self.assertEqual(payload['coffee_farmers'], 1)
        self.assertEqual(payload['tea_farmers'], 1)

    def test_sections_are_sorted_descending(self) -> None:
        payload = build_respondent_analytics(self.rows)
        self.assertEqual(payload['geography']['districts'], [{'name': 'Mbale', 'value': 2}])
        self.assertEqual(payload['technology']['barriers'][0], {'name': 'Cost', 'value': 2})
        self.assertEqual(as_dict(payload['technology']['adoption']), {'Uses Technology': 1, 'No Technology': 1})
        self.assertEqual(as_dict(payload['demographics']['age_groups']), {'25-34': 1, '55+': 1})

    def test_challenges_only_count_grouped_respondents_and_skip_other(self) -> None:
        payload = build_respondent_analytics(self.rows)
        self.assertEqual(payload['business']['challenges'], [{'name': 'Low Prices', 'value': 1}])
        self.assertEqual(
            [node['name'] for node in payload['business']['challenge_sankey']['nodes']],
            ['Bugisu Growers', 'Low Prices'],
        )

    def test_export_rows(self) -> None:
        rows = analytics_export_rows(build_respondent_analytics(self.rows))
        self.assertEqual(rows[0], ['Metric', 'Category', 'Value'])
        self.assertIn(['Total Respondents', '', '2'], rows)
        self.assertIn(['District', 'Mbale', '2'], rows)
        self.assertIn(['Industry Summary', 'Coffee', '1'], rows)


class FollowupAnalyticsTests(SimpleTestCase):
    def setUp(self) -> None:
        self.respondents = [{'household_size': None}, {'household_size': 4}]
        self.followups = [
            {
                'respondent__group_name': 'alpha',
                'attended_training': True,
                'practices_applied': ['Pruning'],
                'practice_results': ['Higher yields'],
                'practice_frequency': 5,
                'group_progress': 4,
                'income_change': 1,
                'group_earnings': 2,
            },
            {
                'respondent__group_name': 'alpha',
                'attended_training': False,
                'practices_applied': None,
                'practice_frequency': None,
                'group_progress': 5,
                'income_change': 2,
                'group_earnings': None,
            },
            {
                'respondent__group_name': None,
                'attended_training': True,
                'practice_frequency': 1,
                'group_progress': None,
                'income_change': -1,
                'group_earnings': -1,
            },
        ]

    def test_summary(self) -> None:
        payload = build_followup_analytics(self.respondents, self.followups)
        self.assertEqual(
            payload['summary'],
            {'total_respondents': 2, 'total_followups': 3, 'new_members': 1, 'new_respondent_pct': 50.0},
        )

    def test_frequency_buckets_include_new_member(self) -> None:
        payload = build_followup_analytics(self.respondents, self.followups)
        self.assertEqual(
            payload['frequencies'],
            [
                {'name': 'Never', 'value': 1},
                {'name': 'Occasionally', 'value': 0},
                {'name': 'Monthly', 'value': 0},
                {'name': 'Weekly', 'value': 0},
                {'name': 'Daily', 'value': 1},
                {'name': 'New Member', 'value': 1},
            ],
        )

    def test_group_averages(self) -> None:
        payload = build_followup_analytics(self.respondents, self.followups)
        self.assertEqual(
            payload['group_progress'],
            [{'name': 'Alpha', 'avg': 4.5, 'label': 'Very Good', 'color': COLORS[0]}],
        )
        self.assertEqual(
            payload['income_changes'],
            [
                {'name': 'Alpha', 'value': 2, 'label': INCOME_LABELS[2], 'color': COLORS[0]},
                {'name': 'Unknown', 'value': -1, 'label': INCOME_LABELS[-1], 'color': COLORS[1]},
            ],
        )
        self.assertEqual(
            payload['group_earnings'],
            [
                {'name': 'Alpha', 'value': 2, 'label': EARNINGS_LABELS[2], 'color': COLORS[0]},
                {'name': 'Unknown', 'value': -1, 'label': EARNINGS_LABELS[-1], 'color': COLORS[1]},
            ],
        )


class ComparisonTests(SimpleTestCase):
    def test_latest_followup_per_respondent(self) -> None:
        respondents = [
            {'id': 1, 'respondent_name': 'Jane', 'district': 'mbale', 'has_business_training': False},
            {'id': 2, 'respondent_name': '', 'district': 'kampala', 'has_business_training': True},
        ]
        followups = [
            {'respondent_id': 1, 'visit_date': date(2024, 3, 1), 'attended_training': True, 'income_change': 3},
            {'respondent_id': 1, 'visit_date': date(2024, 1, 1), 'attended_training': False, 'income_change': 0},
            {'respondent_id': None, 'visit_date': date(2024, 2, 1), 'attended_training': True, 'income_change': 5},
        ]
        payload = build_comparison(respondents, followups)

        self.assertEqual(payload['total_respondents'], 2)
        self.assertEqual(payload['respondents_with_followups'], 1)
        self.assertEqual(payload['followup_rate'], 50.0)
        self.assertEqual(payload['training'], [{'name': 'Business Training', 'original': 1, 'followup': 1}])
        self.assertEqual(payload['income_change'], [{'name': INCOME_LABELS[3], 'value': 1}])

        first, second = payload['respondents']
        self.assertEqual(first['followup_count'], 2)
        self.assertEqual(first['last_visit'], date(2024, 3, 1))
        self.assertTrue(first['training_after'])
        self.assertEqual(second['respondent_name'], 'N/A')
        self.assertIsNone(second['training_after'])
