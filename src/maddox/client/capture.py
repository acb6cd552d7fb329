"""Microphone capture behind a small capability interface."""

import asyncio
import io
import logging
from abc import ABC, abstractmethod

import numpy as np
import sounddevice as sd
import soundfile as sf

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
CHANNELS = 1
CHUNK_SECONDS = 0.1


class CaptureError(RuntimeError):
    """Raised when the microphone cannot be opened."""

    pass


class AudioCapture(ABC):
    """Source of fixed-interval microphone chunks.

    Chunks are mono float32 arrays in [-1.0, 1.0]. ``read_chunk`` returns
    None once the capture has been closed, which is how a pending read is
    released when recording stops.
    """

    sample_rate: int = SAMPLE_RATE

    @abstractmethod
    async def open(self) -> None:
        """Acquire the microphone and start producing chunks.

        Raises:
            CaptureError: If the device cannot be opened
        """
        pass

    @abstractmethod
    async def read_chunk(self) -> np.ndarray | None:
        """Wait for the next chunk, or None after close."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the microphone. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass


class SoundDeviceCapture(AudioCapture):
    """Microphone capture through a sounddevice input stream.

    The PortAudio callback runs on its own thread and hands chunks to the
    event loop through ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        chunk_seconds: float = CHUNK_SECONDS,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.blocksize = int(sample_rate * chunk_seconds)
        self.device = device
        self._stream: sd.InputStream | None = None
        self._queue: asyncio.Queue[np.ndarray | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def _callback(self, indata, frames, time_info, status) -> None:  # sd callback signature
        if status:
            logger.debug(f"Input stream status: {status}")
        chunk = np.array(indata[:, 0], dtype=np.float32)
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, chunk)

    async def open(self) -> None:
        if self._stream is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=CHANNELS,
                dtype="float32",
                blocksize=self.blocksize,
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise CaptureError(f"Failed to open microphone: {e}") from e

        self._stream = stream
        logger.debug(f"Microphone opened at {self.sample_rate} Hz")

    async def read_chunk(self) -> np.ndarray | None:
        if self._stream is None and self._queue.empty():
            return None
        return await self._queue.get()

    async def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.error(f"Error stopping input stream: {e}")
        finally:
            # Release a pending read_chunk
            self._queue.put_nowait(None)
        logger.debug("Microphone released")


def encode_wav(chunks: list[np.ndarray], sample_rate: int) -> bytes:
    """Concatenate chunks and encode them as 16-bit PCM WAV."""
    if not chunks:
        return b""
    samples = np.concatenate(chunks)
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, subtype="PCM_16", format="WAV")
    return buf.getvalue()
