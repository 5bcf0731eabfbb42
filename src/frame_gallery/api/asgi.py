"""ASGI entrypoint for the portfolio API."""

from frame_gallery.api.app import create_app
from frame_gallery.containers import build_container

app = create_app(build_container())
