from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..llm_client import STYLE_GUIDANCE
from ..routes_shared import get_settings, get_store, get_workflow
from ..schemas import (
    OriginalContentRead,
    RemixOutputRead,
    RemixOutputWithOriginal,
    RemixRequest,
    TagCreate,
    TagRead,
    UserPreferencesRead,
    UserPreferencesUpdate,
    VariantRead,
    WorkflowRead,
)
from ..services.store import ContentStore, StoreResult
from ..services.workflow import RemixWorkflow, SaveOutcome
from ..settings import Settings

router = APIRouter(prefix="/api", tags=["remix"])


def _require(result: StoreResult, what: str):
    """Map a store outcome onto HTTP: no store 503, store error 502, missing row 404."""
    if result.unavailable:
        raise HTTPException(status_code=503, detail="Database is not configured")
    if result.failed:
        raise HTTPException(status_code=502, detail=f"Failed to {what}")
    if result.value is None:
        raise HTTPException(status_code=404, detail="Not found")
    return result.value


@router.get("/health")
async def health(settings: Settings = Depends(get_settings), store: ContentStore = Depends(get_store)):
    return {"ok": True, "store": store.available, "llm": settings.llm_configured}


@router.get("/styles")
async def styles(settings: Settings = Depends(get_settings)):
    return {"default": settings.REMIX_STYLES, "known": list(STYLE_GUIDANCE)}


# ---------- workflow ----------

@router.post("/remix", response_model=WorkflowRead)
async def remix(payload: RemixRequest, wf: RemixWorkflow = Depends(get_workflow)):
    await wf.generate(payload.content, payload.styles)
    return wf.snapshot()


@router.get("/variants", response_model=WorkflowRead)
async def variants(wf: RemixWorkflow = Depends(get_workflow)):
    return wf.snapshot()


@router.post("/variants/{index}/save")
async def variant_save(index: int, wf: RemixWorkflow = Depends(get_workflow)):
    outcome = await wf.save(index)
    if outcome is SaveOutcome.unavailable:
        raise HTTPException(status_code=503, detail="Database is not configured")
    if outcome is SaveOutcome.failed:
        raise HTTPException(status_code=502, detail="Failed to save post")
    return {"outcome": outcome.value, "variant": VariantRead(**wf.variant(index).to_dict(index))}


@router.post("/variants/{index}/hide", response_model=VariantRead)
async def variant_hide(index: int, wf: RemixWorkflow = Depends(get_workflow)):
    wf.hide(index)
    return wf.variant(index).to_dict(index)


@router.get("/variants/{index}/share")
async def variant_share(index: int, request: Request, page_url: Optional[str] = None,
                        wf: RemixWorkflow = Depends(get_workflow)):
    return {"url": wf.share_url(index, page_url or str(request.base_url))}


@router.get("/saved", response_model=List[RemixOutputWithOriginal])
async def saved(wf: RemixWorkflow = Depends(get_workflow)):
    return await wf.refresh_saved()


# ---------- stored records ----------

@router.get("/originals/{original_id}", response_model=OriginalContentRead)
async def original(original_id: int, store: ContentStore = Depends(get_store)):
    return _require(await store.get_original_content(original_id), "fetch original content")


@router.get("/originals/{original_id}/remixes", response_model=List[RemixOutputRead])
async def original_remixes(original_id: int, store: ContentStore = Depends(get_store)):
    return (await store.get_remix_outputs(original_id)).value


@router.get("/preferences", response_model=UserPreferencesRead)
async def preferences(user_id: Optional[str] = None, store: ContentStore = Depends(get_store)):
    return _require(await store.get_user_preferences(user_id), "fetch preferences")


@router.put("/preferences", response_model=UserPreferencesRead)
async def preferences_save(payload: UserPreferencesUpdate, store: ContentStore = Depends(get_store)):
    result = await store.save_user_preferences(
        payload.user_id, payload.favorite_remix_types, payload.default_settings
    )
    return _require(result, "save preferences")


@router.get("/tags", response_model=List[TagRead])
async def tags(store: ContentStore = Depends(get_store)):
    return (await store.get_all_tags()).value


@router.post("/tags", response_model=TagRead, status_code=201)
async def tag_create(payload: TagCreate, store: ContentStore = Depends(get_store)):
    return _require(await store.create_tag(payload.name), "create tag")


__all__ = ["router"]
