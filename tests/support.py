"""Shared fixtures: settings, a fake LLM provider, and a throwaway SQLite store."""
from __future__ import annotations

import json
import re
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from remixer.database import init_db
from remixer.services.store import ContentStore
from remixer.settings import Settings

LLM_URL = "https://llm.test/v1"
_POST_TYPE = re.compile(r"Post type: (\S+)")


def make_settings(**overrides) -> Settings:
    values = {
        "LLM_API_KEY": "sk-test",
        "LLM_API_URL": LLM_URL,
        "DATABASE_URL": None,
        "DATABASE_KEY": None,
        "RUN_DB_CREATE_ALL": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def completion(text: str, model: str = "gpt-4o-mini") -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": text}}],
        "model": model,
        "usage": {"total_tokens": 42},
    }


def style_of(request: httpx.Request) -> str:
    """Style tag a chat-completions request was built for."""
    body = json.loads(request.content)
    match = _POST_TYPE.search(body["messages"][1]["content"])
    return match.group(1) if match else ""


def provider(replies: Optional[Dict[str, object]] = None,
             default: Callable[[str], httpx.Response] | None = None) -> httpx.MockTransport:
    """
    Fake provider keyed by style. A reply may be an httpx.Response, an
    exception instance (raised), or a string (returned as a completion).
    Unlisted styles get "<style> post".
    """
    replies = replies or {}

    def handler(request: httpx.Request) -> httpx.Response:
        style = style_of(request)
        reply = replies.get(style)
        if reply is None:
            if default is not None:
                return default(style)
            return httpx.Response(200, json=completion(f"{style} post"))
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # fresh copy per request; a Response is bound to one request
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return httpx.Response(200, json=completion(str(reply)))

    return httpx.MockTransport(handler)


class SqliteStore:
    """Temporary file-backed SQLite database with the schema created."""

    def __init__(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "remixer.db"
        self.url = f"sqlite+aiosqlite:///{self.path}"
        self.settings = make_settings(DATABASE_URL=self.url)
        self.store = ContentStore.from_settings(self.settings)

    async def create(self) -> ContentStore:
        await init_db(self.store.engine, create_all=True)
        return self.store

    async def close(self) -> None:
        await self.store.dispose()
        self._tmp.cleanup()
