"""WSGI entry point for the Value-Chain Tracker project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'valuechain.settings')

application = get_wsgi_application()
