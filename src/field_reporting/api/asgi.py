"""ASGI entrypoint for the field reporting API."""

from field_reporting.api.app import create_app
from field_reporting.containers import build_container

app = create_app(build_container())
