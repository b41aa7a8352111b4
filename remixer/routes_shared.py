from pathlib import Path as FSPath

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .services.store import ContentStore
from .services.workflow import RemixWorkflow
from .settings import Settings

BASE_DIR = FSPath(__file__).resolve().parents[1]
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_workflow(request: Request) -> RemixWorkflow:
    """Workflow for the caller's session cookie (set by the session middleware)."""
    session_id = getattr(request.state, "session_id", None)
    return request.app.state.workflows.get_or_create(session_id)


__all__ = ["BASE_DIR", "TEMPLATES_DIR", "templates", "get_settings", "get_store", "get_workflow"]
