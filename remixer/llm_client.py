import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from .settings import Settings

logger = logging.getLogger(__name__)


class RemixConfigError(RuntimeError):
    """Raised before any request when the provider credentials are missing."""


#----------prompts---------------

SYSTEM_PROMPT = (
    "You are a LinkedIn content expert. Create engaging, professional LinkedIn posts "
    "that drive engagement and provide value to the audience. Focus on storytelling, "
    "insights, and actionable takeaways."
)

BASE_TEMPLATE = (
    'Create a LinkedIn post based on this content: "{content}"\n\n'
    "Requirements:\n"
    "- Professional tone\n"
    "- Engaging opening hook\n"
    "- Clear value proposition\n"
    "- Include relevant hashtags (3-5)\n"
    "- End with a call-to-action or question\n"
    "- Keep under 1,300 characters (LinkedIn limit)\n"
    "- Use line breaks for readability\n\n"
    "Post type: {style}"
)

STYLE_GUIDANCE: Dict[str, str] = {
    "storytelling": (
        'Tell a compelling story that relates to the content. Use "I" statements and '
        "personal experience. Make it relatable and authentic."
    ),
    "insights": (
        'Share key insights and lessons learned. Focus on "what I discovered" or '
        "\"here's what I learned.\" Be educational and thought-provoking."
    ),
    "tips": (
        "Provide actionable tips and advice. Use numbered lists or bullet points. "
        "Make it practical and immediately useful."
    ),
    "question": (
        "Pose thought-provoking questions that encourage discussion. Start with a "
        "question and build context around it."
    ),
    "achievement": (
        "Celebrate a win or milestone related to the content. Be humble but confident. "
        "Share the journey, not just the result."
    ),
    "industry_trend": (
        "Discuss industry trends or observations. Be forward-thinking and show expertise. "
        "Connect to broader business implications."
    ),
}


def build_prompt(content: str, style: str) -> str:
    """Style-specific user prompt; unknown styles get the base template alone."""
    prompt = BASE_TEMPLATE.format(content=content, style=style)
    guidance = STYLE_GUIDANCE.get(style)
    if guidance:
        prompt += f"\n\nStyle: {guidance}"
    return prompt


#----------results---------------

@dataclass(slots=True)
class RemixOk:
    type: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return False


@dataclass(slots=True)
class RemixErr:
    type: str
    kind: str  # http | network | malformed | empty | unknown
    message: str

    @property
    def is_error(self) -> bool:
        return True

    @property
    def content(self) -> str:
        return f"Error generating {self.type}: {self.message}"

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"error": True, "kind": self.kind}


VariantResult = Union[RemixOk, RemixErr]


def _trim(value: str, *, limit: int = 300) -> str:
    value = (value or "").strip()
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


def _extract_text(data: Any) -> Optional[str]:
    """choices[0].message.content, stripped; None when absent or blank."""
    choices = data.get("choices") or []
    if not choices:
        return None
    message = (choices[0] or {}).get("message") or {}
    text = message.get("content")
    if not isinstance(text, str):
        return None
    return text.strip() or None


#----------client---------------

class RemixClient:
    """Fans one content body out to the provider, one chat completion per style."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.settings.LLM_API_URL.rstrip('/')}/chat/completions"

    def _payload(self, content: str, style: str) -> dict:
        return {
            "model": self.settings.LLM_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(content, style)},
            ],
            "max_tokens": self.settings.LLM_MAX_TOKENS,
            "temperature": self.settings.LLM_TEMPERATURE,
        }

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.LLM_TIMEOUT,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.settings.LLM_API_KEY}"},
        )

    async def generate_variants(self, content: str, styles: Sequence[str]) -> List[VariantResult]:
        """
        One result per style, in the order the styles were given. Individual
        failures come back as RemixErr; only missing credentials raise.
        """
        if not self.settings.llm_configured:
            raise RemixConfigError("LLM API key not found")

        styles = list(styles)
        if not styles:
            return []

        logger.info("Remixing %d chars into %d styles via %s", len(content), len(styles), self.endpoint)
        async with self._http_client() as client:
            results = await asyncio.gather(
                *(self._remix_one(client, content, style) for style in styles)
            )
        return list(results)

    async def _remix_one(self, client: httpx.AsyncClient, content: str, style: str) -> VariantResult:
        try:
            r = await client.post(self.endpoint, json=self._payload(content, style))
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("LLM API error for %s: %s", style, status)
            return RemixErr(style, "http", f"LLM API error: {status} - {_trim(e.response.text)}")
        except httpx.HTTPError as e:
            logger.warning("LLM request failed for %s: %s", style, e)
            return RemixErr(style, "network", f"Request failed: {str(e) or type(e).__name__}")
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error remixing %s", style)
            return RemixErr(style, "unknown", str(e) or type(e).__name__)

        try:
            data = r.json()
        except ValueError:
            logger.warning("LLM returned non-JSON for %s: %s", style, _trim(r.text, limit=120))
            return RemixErr(style, "malformed", "Malformed response from LLM provider")
        if not isinstance(data, dict):
            return RemixErr(style, "malformed", "Malformed response from LLM provider")

        try:
            text = _extract_text(data)
        except (AttributeError, KeyError, TypeError):
            return RemixErr(style, "malformed", "Malformed response from LLM provider")
        if not text:
            return RemixErr(style, "empty", "No content received from LLM provider")

        return RemixOk(
            style,
            text,
            {
                "model": data.get("model"),
                "usage": data.get("usage"),
                "original_length": len(content),
            },
        )
