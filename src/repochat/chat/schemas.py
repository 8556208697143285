"""Request and response payloads for the chat endpoint."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_MESSAGE_CHARS = 5000


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_CamelModel):
    message: str = Field(..., max_length=MAX_MESSAGE_CHARS)
    session_id: str | None = None
    include_context: bool = True
    fast_mode: bool = True
    full_content: bool = False

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value


class ChatResponse(_CamelModel):
    response: str | None = None
    session_id: str | None = None
    response_time_ms: int = 0
    source_files: List[str] = Field(default_factory=list)
    model_used: str | None = None
    success: bool = True
    error_message: str | None = None

    @classmethod
    def ok(
        cls,
        response: str,
        session_id: str,
        response_time_ms: int,
        source_files: List[str],
        model_used: str,
    ) -> "ChatResponse":
        return cls(
            response=response,
            session_id=session_id,
            response_time_ms=response_time_ms,
            source_files=source_files,
            model_used=model_used,
            success=True,
        )

    @classmethod
    def failure(cls, error_message: str, session_id: str) -> "ChatResponse":
        return cls(session_id=session_id, success=False, error_message=error_message)
