"""Pydantic models for the MetaSearch API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from metasearch.models import OptimizationMode
from metasearch.services.focus import DEFAULT_FOCUS_MODE

HistoryPair = Tuple[Literal["human", "assistant"], str]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ModelReference(_CamelModel):
    provider_id: str = Field(..., alias="providerId", min_length=1)
    key: str = Field(..., min_length=1)


class ChatMessageBody(_CamelModel):
    message_id: str = Field(..., alias="messageId", min_length=1)
    chat_id: str = Field(..., alias="chatId", min_length=1)
    content: str = Field(..., min_length=1, description="The user's message")


class _TurnRequest(_CamelModel):
    optimization_mode: OptimizationMode = Field(default=OptimizationMode.BALANCED, alias="optimizationMode")
    focus_mode: str = Field(default=DEFAULT_FOCUS_MODE, alias="focusMode", min_length=1)
    history: List[HistoryPair] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list, description="Uploaded file ids")
    chat_model: Optional[ModelReference] = Field(default=None, alias="chatModel")
    embedding_model: Optional[ModelReference] = Field(default=None, alias="embeddingModel")
    system_instructions: str = Field(default="", alias="systemInstructions")


class ChatRequest(_TurnRequest):
    message: ChatMessageBody


class SearchRequest(_TurnRequest):
    query: str = Field(..., min_length=1)
    stream: bool = False


class SearchResponseModel(BaseModel):
    message: str
    sources: List[Dict[str, Any]]


class SuggestionsRequest(_CamelModel):
    chat_history: List[HistoryPair] = Field(..., alias="chatHistory")
    chat_model: Optional[ModelReference] = Field(default=None, alias="chatModel")


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class FieldError(BaseModel):
    path: str
    message: str


class ErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    message: str
    data: Optional[List[FieldError]] = None
