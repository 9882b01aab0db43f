from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DecisionAction = Literal[
    "default",
    "continue_learning",
    "ask_for_clarification",
    "provide_response",
]


class Decision(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: DecisionAction
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""
    based_on_experiences: int = Field(0, ge=0)


# ── Requests ─────────────────────────────────────────────────────────

class CreateExperienceRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str
    source: str
    metadata: Optional[str] = None


class PersonalityRequest(BaseModel):
    input: str
    response: str


class ChatMessageRequest(BaseModel):
    content: str
    session_id: Optional[str] = None


class DocumentUploadRequest(BaseModel):
    filename: str
    content: str
    filetype: str = "txt"


class HttpRequestPayload(BaseModel):
    method: str = "GET"
    url: str
    body: Optional[str] = None
    headers: Optional[list[tuple[str, str]]] = None
    save_to_memory: bool = True


class UpdateLearningRecordRequest(BaseModel):
    tags: Optional[list[str]] = None
    summary: Optional[str] = None


# ── Responses ────────────────────────────────────────────────────────

class PatternInfo(BaseModel):
    keyword: str
    frequency: int
    experience_count: int


class StatsResponse(BaseModel):
    total_experiences: int
    total_patterns: int
    top_patterns: list[PatternInfo]


class PatternDetailResponse(BaseModel):
    keyword: str
    frequency: int
    experience_ids: list[str]
    related_experiences: list[str]


class InteractResponse(BaseModel):
    analysis: str
    experience_count: int
    pattern_summary: list[str]


class PersonalityResponse(BaseModel):
    curiosity: float
    happiness: float
    caution: float
    dominant_trait: str
    influenced_response: str


class ReflectionItem(BaseModel):
    id: str
    timestamp: str
    source: str
    content: str


class ReflectionResponse(BaseModel):
    total_experiences: int
    experiences: list[ReflectionItem]


class DocumentUploadResponse(BaseModel):
    processed: bool
    text: str
    added_to_memory: bool
    experience_id: Optional[str] = None


class HttpRequestResponse(BaseModel):
    success: bool
    status: int
    body: str
    learning_record_id: Optional[str] = None


def envelope(data: Any = None, message: str = "", success: bool = True) -> dict:
    """Wrap a payload in the standard response envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    return {"success": success, "data": data, "message": message}
