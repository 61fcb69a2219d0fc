"""
Data models for the translation layer.
These define the shape of data flowing between the client-facing
OpenAI schema and the NIM backend. All of them are request-scoped
except ModelMap, which lives for the whole process.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Union


class ModelMap(Mapping):
    """Immutable client model name -> backend model id table."""

    def __init__(self, mapping: Mapping[str, str] | None = None):
        self._data = MappingProxyType({str(k): str(v) for k, v in (mapping or {}).items()})

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ModelMap({dict(self._data)!r})"


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation."""
    role: str       # "system", "user", "assistant"
    content: str

    def to_openai_format(self) -> dict:
        return {"role": self.role, "content": self.content}


# ---------------------------------------------------------------------------
# Inbound conversation source: either a full message list or a bare prompt.
# Resolved once, when the request body is parsed.
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Conversation:
    """Client sent `messages`; copied through verbatim, order preserved."""
    messages: tuple[dict, ...] = ()

    def to_messages(self) -> list[dict]:
        return [dict(m) if isinstance(m, dict) else m for m in self.messages]


@dataclass(frozen=True)
class SinglePrompt:
    """Client sent `prompt`; becomes a one-message user conversation."""
    text: str

    def to_messages(self) -> list[dict]:
        return [ChatMessage(role="user", content=self.text).to_openai_format()]


ConversationSource = Union[Conversation, SinglePrompt]


@dataclass(frozen=True)
class CompletionRequest:
    """Client-facing chat/completions request, after shape detection."""
    model: str
    source: ConversationSource
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False

    @classmethod
    def from_body(cls, body: dict) -> "CompletionRequest":
        """
        Pick the conversation source from a raw JSON body.
        Non-empty `messages` wins; otherwise a non-empty string `prompt`;
        otherwise an empty conversation is forwarded as-is.
        """
        messages = body.get("messages")
        prompt = body.get("prompt")

        if isinstance(messages, list) and messages:
            source: ConversationSource = Conversation(tuple(messages))
        elif isinstance(prompt, str) and prompt:
            source = SinglePrompt(prompt)
        else:
            source = Conversation()

        return cls(
            model=str(body.get("model") or ""),
            source=source,
            temperature=body.get("temperature"),
            max_tokens=body.get("max_tokens"),
            stream=bool(body.get("stream", False)),
        )


@dataclass(frozen=True)
class BackendRequest:
    """The payload actually sent to NIM. Always message-shaped."""
    model: str
    messages: tuple[dict, ...]
    temperature: float
    max_tokens: int
    stream: bool = False
    thinking: bool = False

    def to_payload(self) -> dict:
        payload = {
            "model": self.model,
            "messages": [dict(m) if isinstance(m, dict) else m for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }
        # Presence of the hint is the signal; never send it switched off.
        if self.thinking:
            payload["extra_body"] = {"chat_template_kwargs": {"thinking": True}}
        return payload


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class CompletionResponse:
    """Client-facing chat.completion document."""
    id: str
    created: int
    model: str
    choices: list[dict] = field(default_factory=list)
    usage: dict = field(default_factory=lambda: Usage().to_dict())
    object: str = "chat.completion"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "choices": self.choices,
            "usage": self.usage,
        }
