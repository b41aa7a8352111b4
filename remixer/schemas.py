from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


# =========================
# ORIGINAL CONTENT SCHEMAS
# =========================
class OriginalContentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    content_hash: str
    created_at: datetime
    updated_at: datetime


class OriginalContentSummary(BaseModel):
    """Parent fields joined onto a remix row for the saved-posts list."""
    model_config = ConfigDict(from_attributes=True)

    content: str
    created_at: datetime


# =========================
# REMIX OUTPUT SCHEMAS
# =========================
class RemixOutputRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_content_id: int
    remix_type: str
    remixed_content: str
    # ORM rows expose the column as "meta"
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))
    created_at: datetime


class RemixOutputWithOriginal(RemixOutputRead):
    original_content: Optional[OriginalContentSummary] = None


# =========================
# PREFERENCES / TAGS
# =========================
class UserPreferencesRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[str] = None
    favorite_remix_types: List[str] = []
    default_settings: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class UserPreferencesUpdate(BaseModel):
    user_id: Optional[str] = None
    favorite_remix_types: List[str] = []
    default_settings: Optional[Dict[str, Any]] = None


class TagRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class TagCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=64)


# =========================
# REMIX WORKFLOW SCHEMAS
# =========================
class RemixRequest(BaseModel):
    content: str
    styles: Optional[List[str]] = None


class VariantRead(BaseModel):
    index: int
    type: str
    content: str
    metadata: Dict[str, Any] = {}
    state: str
    saved: bool
    deleted: bool


class WorkflowRead(BaseModel):
    state: str
    content: str = ""
    variants: List[VariantRead] = []
