"""FastAPI dependencies exposing the startup-built components."""

from fastapi import Request

from rpw.core.settings import RelaySettings
from rpw.crypto.key_store import KeyStore
from rpw.relay.jwks import KeyPublisher
from rpw.relay.token_relay import TokenRelay


def get_settings(request: Request) -> RelaySettings:
    return request.app.state.settings


def get_key_store(request: Request) -> KeyStore:
    return request.app.state.key_store


def get_token_relay(request: Request) -> TokenRelay:
    return request.app.state.token_relay


def get_key_publisher(request: Request) -> KeyPublisher:
    return request.app.state.key_publisher
