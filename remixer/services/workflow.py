# remixer/services/workflow.py
"""Per-session remix workflow: generate, save, hide, and the saved-posts list."""
from __future__ import annotations

import enum
import logging
import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from remixer.llm_client import RemixClient, VariantResult
from remixer.schemas import RemixOutputWithOriginal
from remixer.services.store import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_SHARE_BASE_URL = "https://www.linkedin.com/sharing/share-offsite/"


class WorkflowState(str, enum.Enum):
    idle = "idle"
    generating = "generating"
    ready = "ready"


class VariantState(str, enum.Enum):
    unsaved = "unsaved"
    saving = "saving"
    saved = "saved"
    hidden = "hidden"


class SavedListState(str, enum.Enum):
    loading = "loading"
    loaded = "loaded"


class SaveOutcome(str, enum.Enum):
    saved = "saved"
    skipped = "skipped"          # already saved, hidden, in flight, or an error card
    failed = "failed"            # store raised
    unavailable = "unavailable"  # no store configured


class EmptyInputError(ValueError):
    pass


class WorkflowBusyError(RuntimeError):
    pass


class UnknownVariantError(LookupError):
    pass


@dataclass(frozen=True)
class Variant:
    type: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    state: VariantState = VariantState.unsaved

    @classmethod
    def from_result(cls, result: VariantResult) -> "Variant":
        return cls(type=result.type, content=result.content, metadata=dict(result.metadata))

    @property
    def saved(self) -> bool:
        return self.state is VariantState.saved

    @property
    def deleted(self) -> bool:
        return self.state is VariantState.hidden

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("error"))

    def to_dict(self, index: int) -> dict:
        return {
            "index": index,
            "type": self.type,
            "content": self.content,
            "metadata": self.metadata,
            "state": self.state.value,
            "saved": self.saved,
            "deleted": self.deleted,
        }


def build_share_url(text: str, page_url: str, base_url: str = DEFAULT_SHARE_BASE_URL) -> str:
    query = urlencode({"url": page_url, "text": text}, quote_via=quote)
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{query}"


class RemixWorkflow:
    """
    idle -> generating -> ready. Each variant then moves one way through
    unsaved -> saving -> saved, or unsaved -> hidden. The variant list and the
    saved list are only ever replaced whole.
    """

    def __init__(
        self,
        client: RemixClient,
        store: ContentStore,
        *,
        default_styles: Sequence[str] = (),
        share_base_url: str = DEFAULT_SHARE_BASE_URL,
    ):
        self.client = client
        self.store = store
        self.default_styles = list(default_styles)
        self.share_base_url = share_base_url

        self.state = WorkflowState.idle
        self.content = ""
        self.variants: List[Variant] = []
        self._generation = 0

        self.saved_state = SavedListState.loading
        self.saved: List[RemixOutputWithOriginal] = []
        self.store_available = store.available

    # ---------- generation ----------
    async def generate(self, content: str, styles: Optional[Sequence[str]] = None) -> List[Variant]:
        if self.state is WorkflowState.generating:
            raise WorkflowBusyError("A remix is already in progress")
        if not (content or "").strip():
            raise EmptyInputError("Nothing to remix")

        styles = list(self.default_styles) if styles is None else list(styles)
        previous = self.state
        self.state = WorkflowState.generating
        try:
            results = await self.client.generate_variants(content, styles)
        except BaseException:
            self.state = previous
            raise

        self._generation += 1
        self.content = content
        self.variants = [Variant.from_result(r) for r in results]
        self.state = WorkflowState.ready
        failed = sum(1 for v in self.variants if v.is_error)
        logger.info("Generated %d variants (%d failed)", len(self.variants), failed)
        return self.variants

    # ---------- per-variant actions ----------
    def variant(self, index: int) -> Variant:
        if index < 0 or index >= len(self.variants):
            raise UnknownVariantError(f"No variant at index {index}")
        return self.variants[index]

    def visible_variants(self) -> List[Tuple[int, Variant]]:
        return [(i, v) for i, v in enumerate(self.variants) if not v.deleted]

    def _set_state(self, index: int, state: VariantState) -> None:
        self.variants = [
            replace(v, state=state) if i == index else v
            for i, v in enumerate(self.variants)
        ]

    async def save(self, index: int) -> SaveOutcome:
        """Persist one variant at most once."""
        variant = self.variant(index)
        if variant.state is not VariantState.unsaved or variant.is_error:
            return SaveOutcome.skipped

        generation = self._generation
        self._set_state(index, VariantState.saving)
        result = await self.store.save_variant(self.content, variant.type, variant.content, variant.metadata)
        current = generation == self._generation

        if result.value is None:
            if current:
                self._set_state(index, VariantState.unsaved)
            if result.unavailable:
                self.store_available = False
                return SaveOutcome.unavailable
            return SaveOutcome.failed

        if current:
            self._set_state(index, VariantState.saved)
        await self.refresh_saved()
        return SaveOutcome.saved

    def hide(self, index: int) -> bool:
        """Soft delete; only unsaved variants can be hidden."""
        variant = self.variant(index)
        if variant.state is not VariantState.unsaved:
            return False
        self._set_state(index, VariantState.hidden)
        return True

    def share_url(self, index: int, page_url: str) -> str:
        return build_share_url(self.variant(index).content, page_url, self.share_base_url)

    # ---------- saved list ----------
    async def refresh_saved(self) -> List[RemixOutputWithOriginal]:
        self.saved_state = SavedListState.loading
        result = await self.store.get_all_remix_outputs()
        self.saved = list(result.value)
        self.store_available = not result.unavailable
        self.saved_state = SavedListState.loaded
        return self.saved

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "content": self.content,
            "variants": [v.to_dict(i) for i, v in enumerate(self.variants)],
        }


class WorkflowStore:
    """In-process registry of workflows keyed by session id."""

    def __init__(self, factory: Callable[[], RemixWorkflow], max_sessions: int = 1000):
        self._factory = factory
        self._max_sessions = max_sessions
        self._lock = threading.Lock()
        self._workflows: "OrderedDict[str, RemixWorkflow]" = OrderedDict()

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(22)

    def get(self, session_id: str) -> Optional[RemixWorkflow]:
        with self._lock:
            return self._workflows.get(session_id)

    def get_or_create(self, session_id: str) -> RemixWorkflow:
        with self._lock:
            wf = self._workflows.get(session_id)
            if wf is None:
                wf = self._factory()
                self._workflows[session_id] = wf
                while len(self._workflows) > self._max_sessions:
                    self._workflows.popitem(last=False)
            else:
                self._workflows.move_to_end(session_id)
            return wf

    def __len__(self) -> int:
        with self._lock:
            return len(self._workflows)


__all__ = [
    "RemixWorkflow",
    "WorkflowStore",
    "Variant",
    "WorkflowState",
    "VariantState",
    "SavedListState",
    "SaveOutcome",
    "EmptyInputError",
    "WorkflowBusyError",
    "UnknownVariantError",
    "build_share_url",
]
