"""Voice recorder: microphone capture, silence detection and transcription.

One recording session moves through IDLE -> RECORDING -> STOPPED ->
TRANSCRIBING and back to IDLE. Recording ends after five consecutive quiet
chunks or a hard ten second timeout, whichever comes first. The
microphone is released on every exit path.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

import numpy as np

from ..errors import TranscriptionError
from .capture import AudioCapture, CaptureError, encode_wav
from .recognition import RecognitionStrategy, RecordedAudio

logger = logging.getLogger(__name__)

SILENCE_THRESHOLD = 0.05
SILENCE_FRAMES = 5
MAX_RECORDING_SECONDS = 10.0
MIN_AUDIO_BYTES = 500
RESTART_DELAY = 1.0

START_FAILED = "Failed to start recording"
DEVICE_FAILED = "Microphone stopped responding"
# Errors that end the listening loop
FATAL_ERRORS = (START_FAILED, DEVICE_FAILED)

TranscriptCallback = Callable[[str], Awaitable[None]]


class RecorderState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    TRANSCRIBING = "transcribing"
    CLOSED = "closed"


def normalized_volume(samples: np.ndarray) -> float:
    """Mean absolute amplitude scaled so that 0.5 full scale reads as 1.0."""
    if samples.size == 0:
        return 0.0
    average = float(np.mean(np.abs(samples)))
    return min(average / 0.5, 1.0)


class SilenceDetector:
    """Counts consecutive quiet frames.

    ``update`` returns True on the frame that completes the run of quiet
    frames; any louder frame resets the count.
    """

    def __init__(
        self, threshold: float = SILENCE_THRESHOLD, required_frames: int = SILENCE_FRAMES
    ) -> None:
        self.threshold = threshold
        self.required_frames = required_frames
        self.count = 0

    def update(self, volume: float) -> bool:
        if volume < self.threshold:
            self.count += 1
            logger.debug(f"Silence detected ({self.count}/{self.required_frames})")
            return self.count >= self.required_frames
        self.count = 0
        return False

    def reset(self) -> None:
        self.count = 0


class VoiceRecorder:
    """Records utterances from a capture and hands transcripts to a callback.

    In continuous mode ``run`` keeps listening: after each transcript it
    awaits the callback (the caller's processing) and then starts the next
    recording; after an empty recording or a failed transcription it waits
    ``restart_delay`` seconds first.

    Example:
        recorder = VoiceRecorder(
            SoundDeviceCapture(),
            RecognitionStrategy(ServerRecognizer(api), LocalRecognizer()),
            on_transcript=session.handle_transcript,
        )
        await recorder.run()
    """

    def __init__(
        self,
        capture: AudioCapture,
        recognition: RecognitionStrategy,
        on_transcript: TranscriptCallback | None = None,
        continuous: bool = True,
        max_duration: float = MAX_RECORDING_SECONDS,
        min_audio_bytes: int = MIN_AUDIO_BYTES,
        restart_delay: float = RESTART_DELAY,
        silence: SilenceDetector | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.capture = capture
        self.recognition = recognition
        self.on_transcript = on_transcript
        self.continuous = continuous
        self.max_duration = max_duration
        self.min_audio_bytes = min_audio_bytes
        self.restart_delay = restart_delay
        self.silence = silence or SilenceDetector()
        self._sleep = sleep

        self.state = RecorderState.IDLE
        self.volume = 0.0
        self.error: str | None = None
        self.transcript = ""
        self.status_message = ""

        self._chunks: list[np.ndarray] = []
        self._stopping = False
        self._discard = False
        self._closed = False

    @property
    def is_recording(self) -> bool:
        return self.state is RecorderState.RECORDING

    async def _end_recording(self, reason: str) -> bool:
        """Close the capture once; later calls are no-ops.

        Returns:
            True if this call ended the recording
        """
        if self._stopping:
            return False
        self._stopping = True
        logger.info(f"Stopping recorder: {reason}")
        if self.state is RecorderState.RECORDING:
            self.state = RecorderState.STOPPED
        await self.capture.close()
        return True

    async def stop(self) -> None:
        """Stop listening and discard the current recording."""
        if self.state is RecorderState.RECORDING:
            self._discard = True
            await self._end_recording("stopped externally")

    async def _cleanup(self) -> None:
        """Release the microphone and reset counters."""
        try:
            await self.capture.close()
        except Exception as e:
            logger.error(f"Error releasing microphone: {e}")
        self._chunks = []
        self.silence.reset()
        self.volume = 0.0
        self._stopping = False
        self._discard = False
        if self.state is not RecorderState.CLOSED:
            self.state = RecorderState.IDLE

    async def record(self) -> RecordedAudio | None:
        """Record one utterance.

        Returns:
            Encoded audio, or None if the recording was discarded (stopped
            externally, no chunks, or smaller than min_audio_bytes)

        Raises:
            CaptureError: If the microphone cannot be opened
            RuntimeError: If the recorder is closed or already recording
        """
        if self._closed:
            raise RuntimeError("Recorder is closed")
        if self.state is RecorderState.RECORDING:
            raise RuntimeError("Already recording")

        await self._cleanup()
        self.error = None
        self.transcript = ""
        self.state = RecorderState.RECORDING

        try:
            await self.capture.open()
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.max_duration

            while not self._stopping:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    await self._end_recording("recording timeout reached")
                    break
                try:
                    chunk = await asyncio.wait_for(self.capture.read_chunk(), remaining)
                except asyncio.TimeoutError:
                    await self._end_recording("recording timeout reached")
                    break
                if chunk is None:
                    break

                self._chunks.append(chunk)
                self.volume = normalized_volume(chunk)
                if self.silence.update(self.volume):
                    await self._end_recording("silence threshold reached")

            if self._discard:
                logger.info("Recording was stopped externally, skipping processing")
                return None
            if not self._chunks:
                logger.info("No audio chunks collected")
                return None

            data = encode_wav(self._chunks, self.capture.sample_rate)
            if len(data) < self.min_audio_bytes:
                logger.warning(f"Audio recording too small ({len(data)} bytes)")
                return None

            return RecordedAudio(data=data, sample_rate=self.capture.sample_rate)
        finally:
            await self._cleanup()

    async def transcribe(self, audio: RecordedAudio) -> str | None:
        """Send a recording through the recognition strategy.

        Returns:
            The transcript, or None when it failed or was empty (``error``
            says why)
        """
        self.state = RecorderState.TRANSCRIBING
        self.status_message = "Transcribing speech..."
        try:
            transcript = (await self.recognition.recognize(audio)).strip()
        except TranscriptionError as e:
            logger.error(f"Error transcribing audio: {e}")
            self.error = str(e)
            return None
        finally:
            self.status_message = ""
            if self.state is RecorderState.TRANSCRIBING:
                self.state = RecorderState.IDLE

        if not transcript:
            self.error = "No speech detected. Please try speaking again."
            return None

        self.transcript = transcript
        return transcript

    async def listen_once(self) -> str | None:
        """Record one utterance and transcribe it.

        Returns:
            Transcript, or None when nothing usable was heard

        Raises:
            CaptureError: If the microphone cannot be opened
        """
        audio = await self.record()
        if audio is None:
            return None
        return await self.transcribe(audio)

    async def run(self, keep_running: Callable[[], bool] | None = None) -> None:
        """Listen continuously until closed or the microphone fails.

        Args:
            keep_running: Checked before every recording and before a
                transcript is delivered; returning False ends the loop and
                drops the transcript
        """

        def active() -> bool:
            return not self._closed and (keep_running is None or keep_running())

        logger.info("VoiceRecorder: Starting listening...")
        while active():
            try:
                transcript = await self.listen_once()
            except CaptureError as e:
                logger.error(f"Error starting recording: {e}")
                self.error = START_FAILED
                return
            except OSError as e:
                logger.error(f"Microphone error while recording: {e}")
                self.error = DEVICE_FAILED
                return

            if not active():
                return
            if transcript is not None and self.on_transcript is not None:
                await self.on_transcript(transcript)
            if not self.continuous:
                return
            if transcript is None and active():
                await self._sleep(self.restart_delay)

    async def close(self) -> None:
        """Stop any recording and release the microphone for good."""
        self._closed = True
        if self.is_recording:
            # record() releases the rest once its read loop ends
            await self.stop()
        else:
            await self._cleanup()
        self.state = RecorderState.CLOSED
