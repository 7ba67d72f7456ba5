"""Pydantic schemas for the synonym search response envelopes."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SynonymData(BaseModel):
    """A normalized word record as returned to clients."""

    model_config = ConfigDict(extra="allow")

    id: int | None = Field(None, description="Row id of the underlying record")
    word: str = Field(..., description="Head word (the searched term after a synonym swap)")
    synonyms: list[str] = Field(default_factory=list, description="Lowercased synonyms")
    antonyms: list[str] = Field(default_factory=list, description="Lowercased antonyms")


class ResponseMeta(BaseModel):
    """Metadata attached to every successful search response."""

    searched: str | None = Field(
        None,
        description="Search term as sent (None for a random pick).",
    )
    found_in: Literal["word", "synonyms"] = Field(
        ...,
        description="Whether the term matched a head word or a synonym entry.",
    )
    timestamp: str = Field(..., description="Time the result was computed.")
    powered_by: str = Field(..., description="Public API name.")
    api_key_used: bool = Field(..., description="Whether a verified API key was presented.")
    from_cache: bool = Field(False, description="True when served from the response cache.")
    note: str | None = Field(None, description="Extra information for keyed callers.")


class SearchResponse(BaseModel):
    """Success envelope of ``GET /api/synonyms``."""

    success: Literal[True] = True
    data: SynonymData
    meta: ResponseMeta

    def to_payload(self) -> dict[str, Any]:
        # ``searched`` stays null for random picks; only optional extras drop out
        payload = self.model_dump()
        if payload["meta"].get("note") is None:
            payload["meta"].pop("note", None)
        if payload["data"].get("id") is None:
            payload["data"].pop("id", None)
        return payload


class ErrorResponse(BaseModel):
    """Error envelope shared by every failing request.

    Error-specific fields (``limit``, ``retryAfter``, ``contact``, ...) are
    carried as extras next to ``error`` and ``message``.
    """

    model_config = ConfigDict(extra="allow")

    success: Literal[False] = False
    error: str = Field(..., description="Short machine-readable code.")
    message: str = Field(..., description="Human-readable explanation.")
    meta: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
