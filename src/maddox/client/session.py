"""Chat session: the listen, reply, speak loop of the voice assistant.

A session owns the conversation history, the recorder loop and audio
playback for as long as it is open. Every stage is guarded: a failure sets
a user-visible error and the loop goes back to listening.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from ..audio.player import AudioPlayer
from ..conversation import ChatTurn, truncate_history
from ..errors import PlaybackError, VoiceClientError
from .api import VoiceApiClient
from .recorder import FATAL_ERRORS, VoiceRecorder
from .retry import RetryPolicy, retry_async
from .voice_service import SynthesisResult, VoiceClient

logger = logging.getLogger(__name__)

OPEN_DELAY = 1.0
MUTED_RESUME_DELAY = 3.0
PLAYBACK_RESUME_DELAY = 0.5
ERROR_RESUME_DELAY = 2.0
PLAYBACK_POLICY = RetryPolicy(max_attempts=3, delay=0.5, backoff=2.0)

STATUS_READY = "Ready to listen. Please speak..."
STATUS_LISTENING = "Listening..."
STATUS_PROCESSING = "Processing your request..."
STATUS_WAITING = "Waiting for next command..."


class ChatSession:
    """Sequential conversation loop over a recorder, the API and a player.

    Only one turn is in flight at a time: the recorder does not listen
    again until ``handle_transcript`` has returned. Closing the session
    does not abort requests already sent; their results are ignored.

    Example:
        session = ChatSession(api, VoiceClient(api), recorder, AudioPlayer())
        await session.open()
        ...
        await session.close()
    """

    def __init__(
        self,
        api: VoiceApiClient,
        voice: VoiceClient,
        recorder: VoiceRecorder,
        player: AudioPlayer,
        muted: bool = False,
        open_delay: float = OPEN_DELAY,
        playback_policy: RetryPolicy = PLAYBACK_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api = api
        self.voice = voice
        self.recorder = recorder
        self.player = player
        self.muted = muted
        self.open_delay = open_delay
        self.playback_policy = playback_policy
        self._sleep = sleep

        self.recorder.on_transcript = self.handle_transcript

        self.is_open = False
        self.is_listening = False
        self.is_processing = False
        self.history: list[ChatTurn] = []
        self.status = ""
        self.error: str | None = None
        self.playback_attempts = 0

        self._generation = 0
        self._listen_task: asyncio.Task[None] | None = None

    def _current(self, generation: int) -> bool:
        return self.is_open and generation == self._generation

    async def open(self) -> None:
        """Open the session and start listening after a short delay."""
        if self.is_open:
            return
        self.is_open = True
        self._generation += 1
        generation = self._generation

        try:
            self.player.ensure_ready()
        except PlaybackError as e:
            logger.error(f"Failed to initialize audio system: {e}")
            self.error = "Failed to initialize audio system"

        self._listen_task = asyncio.create_task(self._listen(generation))

    async def _listen(self, generation: int) -> None:
        await self._sleep(self.open_delay)
        if not self._current(generation) or self.is_processing:
            return

        logger.info("Auto-starting listening...")
        self.status = STATUS_READY
        self.is_listening = True
        try:
            await self.recorder.run(keep_running=lambda: self._current(generation))
        finally:
            if generation == self._generation:
                self.is_listening = False
                if self.recorder.error in FATAL_ERRORS:
                    self.error = self.recorder.error

    async def wait_closed(self) -> None:
        """Wait for the listening loop to finish."""
        if self._listen_task is not None:
            await self._listen_task

    def _fail(self, message: str) -> float:
        logger.error(f"ChatSession: {message}")
        self.error = message
        self.status = STATUS_WAITING
        return ERROR_RESUME_DELAY

    async def handle_transcript(self, transcript: str) -> None:
        """Run one conversation turn for a transcript.

        Appends the user turn, asks the chat endpoint, appends the reply,
        synthesizes it and plays it (or shows it when muted), then waits the
        resume delay so the recorder listens again afterwards.
        """
        if not transcript.strip():
            logger.debug("ChatSession: Empty transcript received, ignoring")
            return

        generation = self._generation
        logger.info(f"ChatSession: Received transcript: {transcript}")
        self.playback_attempts = 0
        self.is_processing = True
        self.is_listening = False
        self.error = None
        self.status = STATUS_PROCESSING
        self.player.stop()

        try:
            resume_delay = await self._respond(transcript, generation)
        finally:
            if generation == self._generation:
                self.is_processing = False

        if resume_delay is None or not self._current(generation):
            return
        await self._sleep(resume_delay)
        if self._current(generation):
            self.status = STATUS_LISTENING
            self.is_listening = True

    async def _respond(self, transcript: str, generation: int) -> float | None:
        self.history.append({"role": "user", "content": transcript})
        self.status = "Getting AI response..."

        try:
            reply = await self.api.chat(transcript, truncate_history(self.history))
        except (VoiceClientError, httpx.HTTPError) as e:
            if not self._current(generation):
                return None
            return self._fail(f"Failed to get AI response: {e}")
        if not self._current(generation):
            return None

        self.history.append({"role": "assistant", "content": reply})
        logger.info(f"ChatSession: Received AI response, converting to speech: {reply}")
        self.status = "Converting response to speech..."

        result = await self.voice.text_to_speech(reply)
        if not self._current(generation):
            return None
        if not result.success:
            return self._fail(f"Speech synthesis failed: {result.error or 'Unknown error'}")

        if self.muted:
            self.status = f"Response (muted): {reply}"
            return MUTED_RESUME_DELAY

        return await self.play_response(result, generation)

    async def play_response(self, result: SynthesisResult, generation: int) -> float | None:
        """Play synthesized audio with bounded retries.

        Returns:
            Delay before listening resumes, or None if the session closed
        """
        audio = result.audio
        if audio is None:
            try:
                audio = await self.api.fetch_audio(result.audio_url or "")
            except httpx.HTTPError as e:
                return self._fail(f"Error preparing audio playback: {e}")

        self.status = "Playing response..."

        async def attempt(number: int) -> bool:
            self.playback_attempts = number
            return await self.player.play_bytes_async(audio)

        def on_retry(e: Exception, retry: int) -> None:
            logger.info(f"ChatSession: Retrying audio playback (attempt {retry + 1})...")
            self.error = "Error playing audio, retrying..."

        try:
            await retry_async(
                attempt,
                self.playback_policy,
                should_retry=lambda e: isinstance(e, PlaybackError) and self._current(generation),
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except PlaybackError as e:
            logger.error(f"ChatSession: Audio playback failed: {e}")
            if not self._current(generation):
                return None
            return self._fail("Error playing audio response after multiple attempts")

        if not self._current(generation):
            return None
        logger.info("ChatSession: Audio finished playing")
        self.error = None
        self.playback_attempts = 0
        self.status = STATUS_LISTENING
        return PLAYBACK_RESUME_DELAY

    def toggle_mute(self) -> bool:
        """Flip mute; muting halts the response currently playing."""
        if not self.muted:
            self.player.stop()
        self.muted = not self.muted
        return self.muted

    def stop_audio(self) -> None:
        self.player.stop()

    async def close(self) -> None:
        """Close the session: halt audio, disarm listening, forget history."""
        if not self.is_open:
            return
        self.is_open = False
        self._generation += 1

        self.player.stop()
        await self.recorder.stop()

        self.is_listening = False
        self.is_processing = False
        self.history = []
        self.status = ""
        self.error = None
        self.playback_attempts = 0

    async def shutdown(self) -> None:
        """Close the session and release the microphone and mixer."""
        await self.close()
        if self._listen_task is not None and not self._listen_task.done():
            if self._listen_task is not asyncio.current_task():
                self._listen_task.cancel()
                try:
                    await self._listen_task
                except asyncio.CancelledError:
                    pass
        await self.recorder.close()
        self.player.close()
