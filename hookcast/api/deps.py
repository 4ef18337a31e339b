"""API dependencies - hand the app's hub to route handlers."""
from pathlib import Path

from fastapi import Request

from hookcast.hub import WebhookHub


def get_hub(request: Request) -> WebhookHub:
    """Hub the app was created with."""
    return request.app.state.hub


def build_hub(project_root: Path) -> WebhookHub:
    """Hub for `hookcast serve`, configured from the project's settings.yaml."""
    return WebhookHub(project_root)
