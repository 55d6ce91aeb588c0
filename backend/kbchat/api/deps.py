"""FastAPI dependencies for the services wired in the lifespan."""
from fastapi import Request, WebSocket

from kbchat.services.conversation.hub import SessionHub
from kbchat.services.factory import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_hub(request: Request) -> SessionHub:
    return request.app.state.services.hub


def get_ws_hub(websocket: WebSocket) -> SessionHub:
    return websocket.app.state.services.hub
