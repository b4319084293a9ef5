"""WSGI config for the godown billing backend."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "godown.settings")

application = get_wsgi_application()
