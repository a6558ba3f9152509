"""Tracker application for the coffee and tea value-chain survey program.

This package contains the models, forms, views, services and management
commands behind the survey dashboard: baseline respondents and their
reference data, the follow-up questionnaire, and the analytics that compare
baseline surveys with follow-up outcomes.
"""
