"""ASGI entrypoint for the presence coordination API."""

from kids_presence.api.app import create_app

app = create_app()
