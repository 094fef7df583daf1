import json
import logging
import re
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal

import httpx

from careprofile.core import get_settings
from careprofile.domain import UPDATE_PROFILE_TOOL_NAME, build_tool_definition
from careprofile.prompts import JSON_RESPONSE_INSTRUCTIONS
from careprofile.utils import strip_json_from_response

logger = logging.getLogger(__name__)


class ChatServiceError(Exception):
    """Raised when the chat/LLM API is unavailable or returns invalid or unexpected output."""


class ChatRateLimitError(ChatServiceError):
    """Raised when the chat/LLM API rate limits the request."""


class ChatBadRequestError(ChatServiceError):
    """Raised when the chat/LLM API rejects the request (HTTP 400)."""


class ChatConfigError(ChatServiceError):
    """Raised when no chat provider is configured."""


@dataclass
class ReplyChunk:
    """One piece of model output: a text fragment, or the structured payload (dict or raw text)."""

    type: Literal["content", "extraction"]
    content: str | None = None
    data: Any = None


# Meta phrases that break the conversational tone
_META_PHRASES = (
    re.compile(r"based on (what you (said|told me|mentioned)|the extracted data)", re.IGNORECASE),
    re.compile(r"I've (saved|noted|recorded|stored|captured)", re.IGNORECASE),
    re.compile(r"let me (save|note|record|store|capture)", re.IGNORECASE),
)


def clean_response(text: str) -> str:
    """Remove meta-references ("I've saved", ...) and tidy leftover spacing/punctuation."""
    cleaned = text or ""
    for phrase in _META_PHRASES:
        cleaned = phrase.sub("", cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    cleaned = re.sub(r"^[,;.]\s*", "", cleaned)
    return cleaned


def _split_fragments(text: str) -> list[str]:
    """Word-sized fragments (trailing whitespace kept) so joined fragments equal text."""
    return re.findall(r"\s*\S+\s*", text)


class ChatProvider(ABC):
    @abstractmethod
    def stream_reply(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
    ) -> AsyncIterator[ReplyChunk]:
        """Yield content fragments as they arrive, then at most one extraction chunk."""


class OpenAICompatibleChatProvider(ChatProvider):
    """OpenAI-compatible endpoint (vLLM, etc.)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        model: str,
        *,
        temperature: float = 0.8,
        timeout: float = 60.0,
        use_tools: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith("/v1"):
            self.base_url = f"{self.base_url}/v1"
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.use_tools = use_tools
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _raise_for_status_error(e: httpx.HTTPStatusError) -> None:
        if e.response.status_code == 429:
            raise ChatRateLimitError(
                "Chat API rate limited the request. Please retry later."
            ) from e
        body = getattr(e.response, "text", None) or ""
        if body:
            logger.warning(
                "Chat API error %s: %s",
                e.response.status_code,
                body[:500],
            )
        if e.response.status_code == 400:
            raise ChatBadRequestError(
                "Chat API rejected the request (400)."
            ) from e
        raise ChatServiceError(
            f"Chat API returned {e.response.status_code}. Please try again later."
        ) from e

    async def stream_reply(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
    ) -> AsyncIterator[ReplyChunk]:
        if self.use_tools:
            inner = self._stream_with_tools(messages, system_prompt)
        else:
            inner = self._reply_as_json(messages, system_prompt)
        async with aclosing(inner) as chunks:
            async for chunk in chunks:
                yield chunk

    # -------------------------------------------------------------------------
    # Streaming + tool call
    # -------------------------------------------------------------------------

    async def _stream_completion(
        self,
        payload: dict,
        tool_calls: dict[int, dict[str, str]],
    ) -> AsyncIterator[str]:
        """POST a streamed completion; yield text deltas, collect tool-call pieces into tool_calls."""
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                ) as r:
                    if r.status_code >= 400:
                        await r.aread()
                    r.raise_for_status()
                    async for line in r.aiter_lines():
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        data = line[5:].strip()
                        if data == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data)
                        except (ValueError, json.JSONDecodeError) as e:
                            raise ChatServiceError("Chat API returned a malformed stream chunk.") from e
                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        delta = choices[0].get("delta") or {}
                        content = delta.get("content")
                        if isinstance(content, str) and content:
                            yield content
                        for call in delta.get("tool_calls") or []:
                            slot = tool_calls.setdefault(
                                call.get("index", 0), {"id": "", "name": "", "arguments": ""}
                            )
                            if call.get("id"):
                                slot["id"] = call["id"]
                            fn = call.get("function") or {}
                            if fn.get("name"):
                                slot["name"] = fn["name"]
                            if fn.get("arguments"):
                                slot["arguments"] += fn["arguments"]
        except httpx.HTTPStatusError as e:
            self._raise_for_status_error(e)
        except httpx.RequestError as e:
            raise ChatServiceError(
                "Chat service unavailable (timeout or connection error). Please try again later."
            ) from e

    async def _stream_with_tools(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
    ) -> AsyncIterator[ReplyChunk]:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "tools": [build_tool_definition()],
            "stream": True,
            "temperature": self.temperature,
        }
        # index -> {"id", "name", "arguments"}; arguments arrive in pieces
        tool_calls: dict[int, dict[str, str]] = {}
        has_text = False
        async with aclosing(self._stream_completion(payload, tool_calls)) as stream:
            async for text in stream:
                has_text = has_text or bool(text.strip())
                yield ReplyChunk(type="content", content=text)

        if tool_calls and not has_text:
            # Tool call only: return the tool results and stream the conversational reply
            follow_up = {
                **payload,
                "messages": [*payload["messages"], *self._tool_result_messages(tool_calls)],
                "tool_choice": "none",
            }
            async with aclosing(self._stream_completion(follow_up, {})) as stream:
                async for text in stream:
                    yield ReplyChunk(type="content", content=text)

        extracted = self._collect_tool_arguments(tool_calls)
        if extracted is not None:
            yield ReplyChunk(type="extraction", data=extracted)

    @staticmethod
    def _tool_result_messages(tool_calls: dict[int, dict[str, str]]) -> list[dict]:
        """Assistant tool-call message followed by one tool result per call."""
        calls = [
            {
                "id": tool_calls[index]["id"] or f"call_{index}",
                "type": "function",
                "function": {
                    "name": tool_calls[index]["name"],
                    "arguments": tool_calls[index]["arguments"],
                },
            }
            for index in sorted(tool_calls)
        ]
        results = [
            {"role": "tool", "tool_call_id": call["id"], "content": "Profile updated."}
            for call in calls
        ]
        return [{"role": "assistant", "content": None, "tool_calls": calls}, *results]

    @staticmethod
    def _collect_tool_arguments(tool_calls: dict[int, dict[str, str]]) -> Any:
        """Merge update_caregiver_profile calls; unparseable arguments are returned as raw text."""
        merged: dict[str, Any] = {}
        raw_fallback: str | None = None
        for index in sorted(tool_calls):
            call = tool_calls[index]
            if call["name"] != UPDATE_PROFILE_TOOL_NAME or not call["arguments"]:
                continue
            try:
                args = json.loads(call["arguments"])
            except (ValueError, json.JSONDecodeError):
                logger.warning("Tool call arguments are not valid JSON: %s", call["arguments"][:200])
                raw_fallback = call["arguments"]
                continue
            if isinstance(args, dict):
                merged.update(args)
        if merged:
            return merged
        return raw_fallback

    # -------------------------------------------------------------------------
    # Single JSON answer {"message", "extracted_data"}
    # -------------------------------------------------------------------------

    async def _chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 2048,
        response_format: dict | None = None,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        if response_format is not None:
            payload["response_format"] = response_format
        try:
            async with self._client() as client:
                r = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
                r.raise_for_status()
                data = r.json()
                choices = data.get("choices") or []
                if not choices:
                    raise ChatServiceError(
                        "Chat API returned no choices (e.g. content filter)."
                    )
                msg = choices[0].get("message") or {}
                content = msg.get("content")
                if content is None or not isinstance(content, str):
                    raise ChatServiceError(
                        "Chat API returned missing or non-string content."
                    )
                stripped = content.strip()
                if not stripped:
                    raise ChatServiceError(
                        "Chat API returned empty content (LLM may have failed or been rate-limited)."
                    )
                return stripped
        except httpx.HTTPStatusError as e:
            self._raise_for_status_error(e)
        except httpx.RequestError as e:
            raise ChatServiceError(
                "Chat service unavailable (timeout or connection error). Please try again later."
            ) from e
        except (KeyError, TypeError, IndexError, ValueError) as e:
            raise ChatServiceError("Chat API returned unexpected response format.") from e

    async def _chat_json(self, messages: list[dict[str, str]]) -> dict:
        """Call _chat and parse response as JSON; retry without response_format if rejected."""
        try:
            text = await self._chat(messages, response_format={"type": "json_object"})
        except ChatBadRequestError:
            # Some providers (e.g. Groq with certain models) return 400 for response_format
            logger.info(
                "Chat API rejected response_format=json_object, retrying without it."
            )
            text = await self._chat(messages, response_format=None)
        raw = strip_json_from_response(text or "")
        try:
            parsed = json.loads(raw)
        except (ValueError, json.JSONDecodeError) as e:
            raise ChatServiceError("Chat returned invalid JSON.") from e
        if not isinstance(parsed, dict):
            raise ChatServiceError("Chat did not return a JSON object.")
        return parsed

    async def _reply_as_json(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
    ) -> AsyncIterator[ReplyChunk]:
        parsed = await self._chat_json(
            [{"role": "system", "content": system_prompt + JSON_RESPONSE_INSTRUCTIONS}, *messages]
        )
        message = parsed.get("message")
        if not isinstance(message, str) or not message.strip():
            raise ChatServiceError("No response received from the AI. Please try again.")
        for fragment in _split_fragments(clean_response(message)):
            yield ReplyChunk(type="content", content=fragment)
        extracted = parsed.get("extracted_data", parsed.get("extractedData"))
        if extracted:
            yield ReplyChunk(type="extraction", data=extracted)


class OpenAIChatProvider(OpenAICompatibleChatProvider):
    """Official OpenAI API."""

    def __init__(self, **kwargs):
        s = get_settings()
        super().__init__(
            base_url="https://api.openai.com/v1",
            api_key=s.openai_api_key,
            model=s.chat_model or _OPENAI_DEFAULT_MODEL,
            **kwargs,
        )


# Default model for OpenAI official API when CHAT_MODEL is not set
_OPENAI_DEFAULT_MODEL = "gpt-4o"
# Default model for OpenAI-compatible (vLLM, etc.) when CHAT_MODEL is not set
_OPENAI_COMPATIBLE_DEFAULT_MODEL = "Qwen/Qwen2.5-7B-Instruct"


def get_chat_provider() -> ChatProvider:
    s = get_settings()
    options = {
        "temperature": s.chat_temperature,
        "timeout": s.chat_timeout_seconds,
        "use_tools": s.chat_use_tools,
    }
    if s.openai_api_key and not s.chat_api_base_url:
        return OpenAIChatProvider(**options)
    if s.chat_api_base_url:
        return OpenAICompatibleChatProvider(
            base_url=s.chat_api_base_url,
            api_key=s.chat_api_key,
            model=s.chat_model or _OPENAI_COMPATIBLE_DEFAULT_MODEL,
            **options,
        )
    raise ChatConfigError(
        "Chat LLM not configured. Set OPENAI_API_KEY or CHAT_API_BASE_URL (and CHAT_MODEL)."
    )
