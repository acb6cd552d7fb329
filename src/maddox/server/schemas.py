"""Request and response models for the voice API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str | None = None
    history: list[ChatMessage] | None = None


class SynthesizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    voice_id: str | None = Field(default=None, alias="voiceId")
    stability: float | None = Field(default=None, ge=0.0, le=1.0)
    similarity_boost: float | None = Field(default=None, ge=0.0, le=1.0)


class TranscribeResponse(BaseModel):
    success: bool = True
    transcript: str


class ChatResponse(BaseModel):
    success: bool = True
    response: str


class SynthesizeResponse(BaseModel):
    success: bool = True
    audioUrl: str
