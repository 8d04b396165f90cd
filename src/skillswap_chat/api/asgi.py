"""ASGI entrypoint for the chat API."""

from skillswap_chat.api.app import create_app
from skillswap_chat.containers import build_container

app = create_app(build_container())
