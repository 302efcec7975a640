"""
WSGI config for GraftCare.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'graftcare.settings.development')

application = get_wsgi_application()
