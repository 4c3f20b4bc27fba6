from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Awaitable, Callable, Optional


logger = logging.getLogger("second_sight.hud.audio")

# ElevenLabs conversational agents default to 16 kHz mono PCM both ways.
SAMPLE_RATE = 16000
BLOCK_SIZE = 1600

StreamFactory = Callable[..., Any]


class AudioError(Exception):
    pass


def _sounddevice():
    # PortAudio is loaded on import, so a missing system library surfaces here.
    try:
        import sounddevice
    except OSError as exc:
        raise AudioError(str(exc) or "PortAudio library not found") from exc
    return sounddevice


def default_input_stream(**kwargs: Any) -> Any:
    return _sounddevice().RawInputStream(**kwargs)


def default_output_stream(**kwargs: Any) -> Any:
    return _sounddevice().RawOutputStream(**kwargs)


class Microphone:
    """Captures PCM blocks from the input device.

    The stream callback runs on the PortAudio thread and hands each block to
    the event loop; ``chunks()`` yields them until ``stop()``.
    """

    def __init__(
        self,
        device: Optional[int] = None,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = BLOCK_SIZE,
        stream_factory: StreamFactory = default_input_stream,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._stream_factory = stream_factory
        self._stream: Optional[Any] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Microphone status: %s", status)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

    async def start(self) -> None:
        if self._stream is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        try:
            stream = self._stream_factory(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype="int16",
                device=self.device,
                callback=self._on_audio,
            )
            stream.start()
        except AudioError:
            raise
        except Exception as exc:
            raise AudioError(f"Microphone unavailable: {exc}") from exc
        self._stream = stream
        logger.info("Microphone started (device=%s)", self.device)

    async def chunks(self) -> AsyncIterator[bytes]:
        queue = self._queue
        if queue is None:
            return
        while True:
            chunk = await queue.get()
            if chunk is None:
                return
            yield chunk

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        await asyncio.to_thread(_close_stream, stream)
        self._queue.put_nowait(None)
        logger.info("Microphone stopped")


class Speaker:
    """Plays PCM bytes received from the agent on the output device."""

    def __init__(
        self,
        device: Optional[int] = None,
        sample_rate: int = SAMPLE_RATE,
        stream_factory: StreamFactory = default_output_stream,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self._stream_factory = stream_factory
        self._stream: Optional[Any] = None
        self._buffer = bytearray()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def play(self, chunk: bytes) -> None:
        if self._stream is None:
            return
        with self._lock:
            self._buffer.extend(chunk)

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _fill(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        wanted = len(outdata)
        with self._lock:
            data = bytes(self._buffer[:wanted])
            del self._buffer[:wanted]
        outdata[: len(data)] = data
        if len(data) < wanted:
            outdata[len(data):] = b"\x00" * (wanted - len(data))

    async def start(self) -> None:
        if self._stream is not None:
            return
        try:
            stream = self._stream_factory(
                samplerate=self.sample_rate,
                channels=1,
                dtype="int16",
                device=self.device,
                callback=self._fill,
            )
            stream.start()
        except AudioError:
            raise
        except Exception as exc:
            raise AudioError(f"Speaker unavailable: {exc}") from exc
        self._stream = stream
        logger.info("Speaker started (device=%s)", self.device)

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        await asyncio.to_thread(_close_stream, stream)
        self.clear()
        logger.info("Speaker stopped")


def _close_stream(stream: Any) -> None:
    stream.stop()
    stream.close()


async def pump_microphone(microphone: Microphone, send: Callable[[bytes], Awaitable[None]]) -> None:
    """Forward microphone blocks to ``send`` until the microphone stops."""
    async for chunk in microphone.chunks():
        await send(chunk)
