"""Voice API routes mounted under /api/voice."""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import StreamingResponse

from ..errors import AudioNotFoundError, InvalidRequestError, RangeNotSatisfiableError
from .schemas import (
    ChatRequest,
    ChatResponse,
    SynthesizeRequest,
    SynthesizeResponse,
    TranscribeResponse,
)
from .services import VoiceServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voice")

CHUNK_SIZE = 64 * 1024
_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")

AUDIO_HEADERS = {
    "Content-Disposition": "inline",
    "Accept-Ranges": "bytes",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type, Range",
    "Access-Control-Expose-Headers": "Content-Type, Content-Length, Content-Range",
    "Cache-Control": "public, max-age=86400",
}


def get_services(request: Request) -> VoiceServices:
    return request.app.state.services


def parse_range(header: str, size: int) -> tuple[int, int]:
    """Parse a single ``bytes=`` range into inclusive (start, end) offsets.

    Supports ``start-end``, open-ended ``start-`` and suffix ``-N`` forms.
    The end offset is clamped to the file size.

    Raises:
        RangeNotSatisfiableError: If the range is malformed or outside the file
    """
    match = _RANGE_RE.match(header.strip())
    if not match or (not match.group(1) and not match.group(2)):
        raise RangeNotSatisfiableError(f"Invalid range: {header}", size)

    first, last = match.groups()
    if first:
        start = int(first)
        end = int(last) if last else size - 1
    else:
        # Suffix range: the final N bytes
        length = int(last)
        if length == 0:
            raise RangeNotSatisfiableError(f"Invalid range: {header}", size)
        start = max(size - length, 0)
        end = size - 1

    end = min(end, size - 1)
    if start >= size or start > end:
        raise RangeNotSatisfiableError(
            f"Range {header} not satisfiable for {size} bytes", size
        )
    return start, end


def iter_file(path: Path, start: int, end: int) -> Iterator[bytes]:
    """Yield the inclusive byte range of a file in chunks."""
    remaining = end - start + 1
    with open(path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    request: Request, audio: UploadFile | None = File(None)
) -> TranscribeResponse:
    """Transcribe an uploaded recording with the speech service."""
    if audio is None:
        raise InvalidRequestError("No audio file uploaded")

    content = await audio.read()
    mime_type = audio.content_type or "audio/webm"
    logger.info(
        f"Received audio file: {audio.filename}, size: {len(content)} bytes, "
        f"mimetype: {mime_type}"
    )

    transcript = await get_services(request).transcribe(content, mime_type)
    return TranscribeResponse(transcript=transcript)


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest) -> ChatResponse:
    """Generate the assistant's reply to a message."""
    if not body.message or not body.message.strip():
        raise InvalidRequestError("Message is required for chat")

    history = None
    if body.history:
        history = [turn.model_dump() for turn in body.history]

    response = await get_services(request).reply(body.message, history)
    return ChatResponse(response=response)


@router.post("/synthesize", response_model=SynthesizeResponse)
async def synthesize(request: Request, body: SynthesizeRequest) -> SynthesizeResponse:
    """Synthesize text to a cached MP3 and return its URL."""
    if not body.text or not body.text.strip():
        raise InvalidRequestError("Text is required for speech synthesis")

    audio_url, cached = await get_services(request).synthesize(
        body.text,
        voice_id=body.voice_id,
        stability=body.stability,
        similarity_boost=body.similarity_boost,
    )
    logger.debug(f"Synthesis {'cache hit' if cached else 'cache miss'}: {audio_url}")
    return SynthesizeResponse(audioUrl=audio_url)


@router.get("/audio/{filename:path}")
async def audio(request: Request, filename: str) -> StreamingResponse:
    """Stream a cached audio file, honouring Range requests."""
    logger.debug(f"Audio file requested: {filename}")
    path = get_services(request).cache.resolve(filename)
    if path is None:
        logger.error(f"Audio file not found: {filename}")
        raise AudioNotFoundError("Audio file not found")

    size = path.stat().st_size
    headers = dict(AUDIO_HEADERS)

    range_header = request.headers.get("range")
    if range_header:
        start, end = parse_range(range_header, size)
        logger.debug(f"Serving byte range {start}-{end}/{size}")
        headers["Content-Range"] = f"bytes {start}-{end}/{size}"
        headers["Content-Length"] = str(end - start + 1)
        return StreamingResponse(
            iter_file(path, start, end),
            status_code=206,
            media_type="audio/mpeg",
            headers=headers,
        )

    headers["Content-Length"] = str(size)
    return StreamingResponse(
        iter_file(path, 0, size - 1),
        media_type="audio/mpeg",
        headers=headers,
    )


@router.get("/health")
async def health(request: Request) -> dict:
    """Report which provider credentials are configured."""
    return {"success": True, "providers": get_services(request).provider_status()}
