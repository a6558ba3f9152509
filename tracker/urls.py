"""URL declarations for the tracker application.

Respondent, reference and follow-up endpoints live in :mod:`tracker.views`;
the dashboards' data endpoints live in :mod:`tracker.views_analytics`.
"""

from django.urls import path

from . import views
from . import views_analytics as analytics

urlpatterns = [
    # Respondents
    path('api/respondents/', views.respondent_list, name='respondent_list'),
    path('api/respondents/export/', views.respondent_export, name='respondent_export'),
    path('api/respondents/import/', views.respondent_import, name='respondent_import'),
    path('api/respondents/<int:pk>/', views.respondent_detail, name='respondent_detail'),
    path('api/respondents/<int:pk>/edit/', views.respondent_edit, name='respondent_edit'),
    path('api/respondents/<int:pk>/delete/', views.respondent_delete, name='respondent_delete'),
    # Reference tables: districts, groups, industries, locations
    path('api/reference/<str:kind>/', views.reference_list, name='reference_list'),
    path('api/reference/<str:kind>/<int:pk>/edit/', views.reference_edit, name='reference_edit'),
    path('api/reference/<str:kind>/<int:pk>/delete/', views.reference_delete, name='reference_delete'),
    # Follow-up visits
    path('api/followups/', views.followup_history, name='followup_history'),
    path(
        'api/followups/questionnaire/<int:respondent_id>/',
        views.followup_questionnaire,
        name='followup_questionnaire',
    ),
    # Analytics
    path('api/analytics/', analytics.analytics_data, name='analytics_data'),
    path('api/analytics/followups/', analytics.followup_analytics_data, name='followup_analytics_data'),
    path('api/analytics/export/', analytics.analytics_export, name='analytics_export'),
    path('api/comparison/', analytics.comparison_data, name='comparison_data'),
    path('api/comparison/<int:pk>/', analytics.comparison_detail, name='comparison_detail'),
]
