"""
WSGI config for limitador_sessoes project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "limitador_sessoes.settings")

application = get_wsgi_application()
