"""Management package for custom Django admin commands.

This package exposes additional ``manage.py`` commands used for bulk
respondent ingestion.  Refer to the documentation in
``import_respondents.py`` for more details.
"""
