"""Provider HTTP clients: pure request/response, no retry logic.

Failover, key rotation and timeouts live in the synthesizer; a client
only translates (prompt, history, system instruction) into one vendor's
wire format and raises ``ProviderCallError`` when the call is refused.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import httpx
import structlog

from pedagogy_master.domain.exceptions import ProviderCallError
from pedagogy_master.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)

GEMINI_HISTORY_TURNS = 6
DEFAULT_HISTORY_TURNS = 2
DEFAULT_MAX_TOKENS = 4096
# never a query parameter: httpx errors and access logs include the full URL
GEMINI_KEY_HEADER = "x-goog-api-key"


class _HttpClientMixin:
    def __init__(self, http: httpx.AsyncClient | None = None, *, timeout: float = 120.0) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @staticmethod
    def _raise_for_status(provider: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                error = body.get("error")
                detail = error.get("message", "") if isinstance(error, dict) else str(error or "")
        except ValueError:
            detail = response.text[:200]
        raise ProviderCallError(
            provider,
            f"HTTP {response.status_code} {detail}".strip(),
            status_code=response.status_code,
        )


class GeminiClient(_HttpClientMixin):
    """Google Generative Language ``generateContent`` REST client."""

    async def generate(
        self,
        cfg: ProviderConfig,
        api_key: str,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        *,
        grounded: bool = False,
    ) -> str:
        response = await self._http.post(
            f"{cfg.endpoint}/models/{cfg.model}:generateContent",
            headers={"Content-Type": "application/json", GEMINI_KEY_HEADER: api_key},
            json={
                "system_instruction": {"parts": [{"text": system_instruction}]},
                "contents": build_gemini_contents(prompt, history),
                "generationConfig": {
                    "temperature": 0.1 if grounded else 0.7,
                    "topK": 40,
                    "topP": 0.95,
                    "maxOutputTokens": cfg.metadata.get("max_tokens", DEFAULT_MAX_TOKENS),
                },
            },
        )
        self._raise_for_status(cfg.provider_id, response)
        data = response.json()
        parts = (data.get("candidates") or [{}])[0].get("content", {}).get("parts", [])
        text = "".join(p.get("text", "") for p in parts)
        if not text:
            raise ProviderCallError(cfg.provider_id, "empty response")
        return text


def build_gemini_contents(
    prompt: str, history: Sequence[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    """Map chat history onto Gemini ``contents``.

    Only the last six turns are sent.  Roles become ``user``/``model`` and
    a turn with the same role as the one before it is dropped.  The prompt
    joins the trailing user turn or opens a new one.
    """
    contents: list[dict[str, Any]] = []
    last_role = ""
    for turn in list(history)[-GEMINI_HISTORY_TURNS:]:
        role = "user" if turn.get("role") == "user" else "model"
        if role == last_role:
            continue
        contents.append({"role": role, "parts": [{"text": str(turn.get("content", ""))}]})
        last_role = role

    if contents and contents[-1]["role"] == "user":
        contents[-1]["parts"].append({"text": f"\n\nNEW_QUERY: {prompt}"})
    else:
        contents.append({"role": "user", "parts": [{"text": prompt}]})
    return contents


class OpenAICompatibleClient(_HttpClientMixin):
    """``/chat/completions`` client shared by every OpenAI-style vendor.

    Per-provider behaviour comes from ``cfg.metadata``:
    ``history_turns``, ``grounded_system`` (replaces the system prompt
    when the answer must stick to retrieved text) and ``extra_headers``.
    """

    async def generate(
        self,
        cfg: ProviderConfig,
        api_key: str,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        *,
        grounded: bool = False,
    ) -> str:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        headers.update(cfg.metadata.get("extra_headers", {}))

        response = await self._http.post(
            f"{cfg.endpoint}/chat/completions",
            headers=headers,
            json={
                "model": cfg.model,
                "messages": build_chat_messages(cfg, prompt, history, system_instruction, grounded),
                "temperature": 0.0 if grounded else 0.7,
                "max_tokens": cfg.metadata.get("max_tokens", DEFAULT_MAX_TOKENS),
            },
        )
        self._raise_for_status(cfg.provider_id, response)
        data = response.json()
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderCallError(cfg.provider_id, f"malformed response: {exc}") from exc
        if not text:
            raise ProviderCallError(cfg.provider_id, "empty response")
        return text


def build_chat_messages(
    cfg: ProviderConfig,
    prompt: str,
    history: Sequence[Mapping[str, Any]],
    system_instruction: str,
    grounded: bool,
) -> list[dict[str, str]]:
    system = system_instruction
    if grounded and cfg.metadata.get("grounded_system"):
        system = cfg.metadata["grounded_system"]

    depth = cfg.metadata.get("history_turns", DEFAULT_HISTORY_TURNS)
    turns = list(history)[-depth:] if depth > 0 else []

    messages = [{"role": "system", "content": system}]
    messages.extend(
        {
            "role": "user" if turn.get("role") == "user" else "assistant",
            "content": str(turn.get("content", "")),
        }
        for turn in turns
    )
    messages.append({"role": "user", "content": prompt})
    return messages
