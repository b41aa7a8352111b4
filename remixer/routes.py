import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from .llm_client import RemixConfigError, STYLE_GUIDANCE
from .routes_shared import get_settings, get_workflow, templates
from .services.workflow import (
    EmptyInputError,
    RemixWorkflow,
    SaveOutcome,
    UnknownVariantError,
    WorkflowBusyError,
)
from .settings import Settings

router = APIRouter()
logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save post. Please try again."
SAVE_UNAVAILABLE_MESSAGE = "Saving is unavailable: no database is configured."


def _back_home(error: Optional[str] = None) -> RedirectResponse:
    url = f"/?error={quote(error, safe='')}" if error else "/"
    return RedirectResponse(url=url, status_code=303)


def _render(request: Request, wf: RemixWorkflow, settings: Settings, *, error: Optional[str] = None,
            status_code: int = 200) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "remixer.html",
        {
            "workflow": wf,
            "variants": wf.visible_variants(),
            "saved": wf.saved,
            "styles": settings.REMIX_STYLES,
            "known_styles": list(STYLE_GUIDANCE),
            "error": error,
            "llm_configured": settings.llm_configured,
        },
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    error: Optional[str] = None,
    wf: RemixWorkflow = Depends(get_workflow),
    settings: Settings = Depends(get_settings),
):
    # saved list reloads on every page load
    await wf.refresh_saved()
    return _render(request, wf, settings, error=error)


@router.post("/remix")
async def remix_submit(
    request: Request,
    content: str = Form(""),
    styles: List[str] = Form(default=[]),
    wf: RemixWorkflow = Depends(get_workflow),
    settings: Settings = Depends(get_settings),
):
    try:
        await wf.generate(content, styles or None)
    except EmptyInputError:
        return _back_home("Paste some content to remix first.")
    except WorkflowBusyError:
        return _back_home("A remix is already in progress.")
    except RemixConfigError as e:
        logger.error("Remix blocked: %s", e)
        return _render(request, wf, settings, error=f"Configuration error: {e}", status_code=503)
    return _back_home()


@router.post("/variants/{index}/save")
async def variant_save(index: int, wf: RemixWorkflow = Depends(get_workflow)):
    try:
        outcome = await wf.save(index)
    except UnknownVariantError:
        return _back_home("That post is no longer available.")
    if outcome is SaveOutcome.failed:
        return _back_home(SAVE_FAILED_MESSAGE)
    if outcome is SaveOutcome.unavailable:
        return _back_home(SAVE_UNAVAILABLE_MESSAGE)
    return _back_home()


@router.post("/variants/{index}/hide")
async def variant_hide(index: int, wf: RemixWorkflow = Depends(get_workflow)):
    try:
        wf.hide(index)
    except UnknownVariantError:
        return _back_home("That post is no longer available.")
    return _back_home()


@router.get("/variants/{index}/share")
async def variant_share(index: int, request: Request, wf: RemixWorkflow = Depends(get_workflow)):
    try:
        url = wf.share_url(index, str(request.base_url))
    except UnknownVariantError:
        return _back_home("That post is no longer available.")
    return RedirectResponse(url=url, status_code=303)


__all__ = ["router"]
