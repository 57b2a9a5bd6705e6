"""Playback of synthesized speech chunks arriving from a live session.

Chunks are placed back to back on a sample-exact timeline driven by the
output device clock, so they never overlap and never leave silence between
them when they arrive faster than they play. interrupt() flushes everything
for barge-in.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

import numpy as np

from sahayak.config import Config
from sahayak.errors import DeviceUnavailable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def decode_pcm16(data: bytes) -> np.ndarray:
    """16-bit little-endian PCM -> float32 samples in [-1.0, 1.0). A trailing odd byte is dropped."""
    n = len(data) // 2
    if n == 0:
        return np.zeros(0, dtype=np.float32)
    return np.frombuffer(bytes(data[: n * 2]), dtype="<i2").astype(np.float32) / 32768.0


@dataclass
class ScheduledChunk:
    samples: np.ndarray
    start_frame: int
    sample_rate: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.frames

    @property
    def start(self) -> float:
        return self.start_frame / self.sample_rate

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    @property
    def end(self) -> float:
        return self.end_frame / self.sample_rate


class PlaybackScheduler:
    """Gapless sequential scheduler.

    Time comes from ``clock`` when given (seconds), otherwise from the number of
    frames rendered so far, which is the output device's own clock.
    render() runs on the audio thread; everything else on the event loop.
    """

    def __init__(self, sample_rate: Optional[int] = None, clock: Optional[Clock] = None):
        self.sample_rate = int(sample_rate or Config.PLAYBACK_SAMPLE_RATE)
        self._clock = clock
        self._frames_rendered = 0
        self._next_frame = 0
        self._pending: List[ScheduledChunk] = []
        self._lock = threading.Lock()

    def current_time(self) -> float:
        if self._clock is not None:
            return float(self._clock())
        return self._frames_rendered / self.sample_rate

    def _now_frame(self) -> int:
        return int(round(self.current_time() * self.sample_rate))

    @property
    def next_start_time(self) -> float:
        with self._lock:
            return self._next_frame / self.sample_rate

    @property
    def pending(self) -> List[ScheduledChunk]:
        """Chunks that are playing or still waiting to play."""
        with self._lock:
            self._prune(self._now_frame())
            return list(self._pending)

    def enqueue(self, chunk: Union[bytes, bytearray, np.ndarray]) -> Optional[ScheduledChunk]:
        """Schedule a chunk at max(now, next start). Returns None for an empty chunk."""
        if isinstance(chunk, (bytes, bytearray, memoryview)):
            samples = decode_pcm16(chunk)
        else:
            samples = np.asarray(chunk, dtype=np.float32).reshape(-1)
        if samples.size == 0:
            return None

        with self._lock:
            start = max(self._now_frame(), self._next_frame)
            item = ScheduledChunk(samples=samples, start_frame=start, sample_rate=self.sample_rate)
            self._next_frame = item.end_frame
            self._pending.append(item)
        return item

    def interrupt(self) -> int:
        """Stop everything playing or pending and restart the cursor at the current time."""
        with self._lock:
            dropped = len(self._pending)
            self._pending.clear()
            self._next_frame = self._now_frame()
        if dropped:
            logger.info(f"[PLAYBACK] interrupted, dropped {dropped} chunk(s)")
        return dropped

    def render(self, frames: int) -> np.ndarray:
        """Mix the next ``frames`` samples of the schedule."""
        out = np.zeros(int(frames), dtype=np.float32)
        with self._lock:
            t0 = self._now_frame()
            t1 = t0 + int(frames)
            for item in self._pending:
                lo = max(t0, item.start_frame)
                hi = min(t1, item.end_frame)
                if hi <= lo:
                    continue
                out[lo - t0:hi - t0] += item.samples[lo - item.start_frame:hi - item.start_frame]
            if self._clock is None:
                self._frames_rendered += int(frames)
            self._prune(self._now_frame())
        return out

    def _prune(self, now_frame: int) -> None:
        self._pending = [c for c in self._pending if c.end_frame > now_frame]


def open_output_stream(**kwargs) -> Any:
    """Default output factory: a started sounddevice OutputStream."""
    try:
        import sounddevice as sd
    except OSError as e:
        raise DeviceUnavailable(f"PortAudio library not available: {e}") from e

    try:
        stream = sd.OutputStream(**kwargs)
        stream.start()
    except (sd.PortAudioError, ValueError) as e:
        raise DeviceUnavailable(f"No usable output device: {e}") from e
    return stream


class AudioOutput:
    """Output device that plays whatever the scheduler renders."""

    def __init__(self, scheduler: PlaybackScheduler, blocksize: int = 1024, stream_factory=None):
        self.scheduler = scheduler
        self.blocksize = int(blocksize)
        self._stream_factory = stream_factory or open_output_stream
        self._stream: Any = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"[PLAYBACK] sd_status: {status}")
        outdata[:, 0] = self.scheduler.render(frames)

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = self._stream_factory(
            samplerate=self.scheduler.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.blocksize,
            callback=self._callback,
        )
        logger.info(f"[PLAYBACK] output started sr={self.scheduler.sample_rate}")

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            try:
                stream.stop()
            finally:
                stream.close()
        except Exception as e:
            logger.warning(f"[PLAYBACK] error closing output stream: {e!r}")
        logger.info("[PLAYBACK] output closed")
