"""Microphone capture for recorded voice messages and live voice sessions."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
import wave
from typing import Any, Callable, List, Optional, Tuple

import numpy as np

from sahayak.config import Config
from sahayak.errors import AssistantError, DeviceUnavailable, PermissionDenied
from sahayak.models import EncodedClip

logger = logging.getLogger(__name__)

# Stream factories take sounddevice.InputStream keyword arguments and return a
# started stream exposing stop() and close().
StreamFactory = Callable[..., Any]
FrameCallback = Callable[[bytes], None]


def _to_mono_int16(indata: np.ndarray) -> Tuple[bytes, float]:
    """
    Convert sounddevice callback 'indata' into mono PCM16 little-endian bytes.
    Uses the first channel only.
    Returns (pcm_bytes, rms_float_0_1).
    """
    x = np.asarray(indata)

    if x.ndim == 2 and x.shape[1] >= 1:
        mono = x[:, 0]
    else:
        mono = x.reshape(-1)

    # float32 in [-1, 1] for consistent scaling/rms
    if mono.dtype == np.int16:
        f = mono.astype(np.float32) / 32768.0
    else:
        f = mono.astype(np.float32)

    f = np.clip(f, -1.0, 1.0)
    pcm16 = (f * 32767.0).astype("<i2").tobytes(order="C")
    rms = float(np.sqrt(np.mean(f * f)) + 1e-12) if f.size else 0.0
    return pcm16, rms


def _encode_wav(pcm16: bytes, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(int(sample_rate))
        w.writeframes(pcm16)
    return buf.getvalue()


def _classify_device_error(exc: Exception) -> AssistantError:
    text = str(exc).lower()
    if any(k in text for k in ("permission", "denied", "not authorized", "not permitted")):
        return PermissionDenied(f"Microphone access denied: {exc}")
    return DeviceUnavailable(f"No usable input device: {exc}")


def open_input_stream(**kwargs) -> Any:
    """Default stream factory: a started sounddevice InputStream."""
    try:
        import sounddevice as sd
    except OSError as e:
        raise DeviceUnavailable(f"PortAudio library not available: {e}") from e

    try:
        sd.query_devices(kwargs.get("device"), kind="input")
    except (sd.PortAudioError, ValueError) as e:
        raise DeviceUnavailable(f"No input device: {e}") from e

    try:
        stream = sd.InputStream(**kwargs)
        stream.start()
    except sd.PortAudioError as e:
        raise _classify_device_error(e) from e
    return stream


def list_input_devices():
    """
    Returns available INPUT audio devices.
    Used by the /audio/devices endpoint for device selection.
    """
    try:
        import sounddevice as sd
        devices = []
        for idx, d in enumerate(sd.query_devices()):
            if int(d.get("max_input_channels", 0)) <= 0:
                continue
            devices.append(
                {
                    "index": idx,
                    "name": d.get("name", f"Device {idx}"),
                    "max_input_channels": int(d.get("max_input_channels", 0)),
                    "default_samplerate": int(d.get("default_samplerate", 0) or 0),
                }
            )
    except Exception as e:
        return {"ok": False, "error": repr(e), "devices": []}

    return {"ok": True, "devices": devices}


class _CaptureHandle:
    """Owns one open input stream. Released exactly once."""

    def __init__(self, controller: "AudioCaptureController", on_terminated: Optional[Callable[[Any], None]]):
        self._controller = controller
        self._on_terminated = on_terminated
        self._loop = asyncio.get_running_loop()
        self._stream: Any = None
        self._closed = False
        self.terminated = False
        self.level = 0.0
        self.sample_rate = controller.sample_rate

    @property
    def active(self) -> bool:
        return not self._closed

    def _attach(self, stream: Any) -> None:
        self._stream = stream

    def _post(self, fn, *args) -> None:
        # PortAudio thread -> event loop
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            logger.debug("[CAPTURE] event loop closed; dropping callback")

    def _on_stream_finished(self) -> None:
        if not self._closed:
            self._post(self._handle_terminated)

    def _handle_terminated(self) -> None:
        if self._closed:
            return
        logger.warning("[CAPTURE] input stream terminated unexpectedly")
        self.terminated = True
        self._release()
        if self._on_terminated is not None:
            self._on_terminated(self)

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        stream, self._stream = self._stream, None
        try:
            if stream is not None:
                try:
                    stream.stop()
                finally:
                    stream.close()
        except Exception as e:
            logger.warning(f"[CAPTURE] error closing input stream: {e!r}")
        finally:
            self._controller._release_microphone(self)


class ClipRecording(_CaptureHandle):
    """A recording in progress. elapsed_seconds ticks once per second."""

    def __init__(self, controller, on_terminated=None):
        super().__init__(controller, on_terminated)
        self._chunks: List[bytes] = []
        self._lock = threading.Lock()
        self._ticker: Optional[asyncio.Task] = None
        self.elapsed_seconds = 0

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"[CAPTURE] sd_status: {status}")
        pcm16, rms = _to_mono_int16(indata)
        self.level = rms
        with self._lock:
            if not self._closed:
                self._chunks.append(pcm16)

    def _start_ticker(self) -> None:
        self._ticker = self._loop.create_task(self._tick())

    async def _tick(self) -> None:
        while not self._closed:
            await asyncio.sleep(1.0)
            if self._closed:
                break
            self.elapsed_seconds += 1

    def _take_pcm(self) -> bytes:
        with self._lock:
            data = b"".join(self._chunks)
            self._chunks.clear()
        return data

    def _release(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        super()._release()


class ContinuousCapture(_CaptureHandle):
    """Live-mode capture: every frame is handed to on_frame on the event loop."""

    def __init__(self, controller, on_frame: FrameCallback, on_terminated=None):
        super().__init__(controller, on_terminated)
        self._on_frame = on_frame
        self.frames_captured = 0

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"[CAPTURE] sd_status: {status}")
        pcm16, rms = _to_mono_int16(indata)
        self.level = rms
        self._post(self._deliver, pcm16)

    def _deliver(self, pcm16: bytes) -> None:
        if self._closed:
            return
        self.frames_captured += 1
        self._on_frame(pcm16)


class AudioCaptureController:
    """Acquires and releases the microphone. At most one capture holds it at a time."""

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        frame_samples: Optional[int] = None,
        device=None,
        stream_factory: Optional[StreamFactory] = None,
    ):
        self.sample_rate = int(sample_rate or Config.CAPTURE_SAMPLE_RATE)
        self.frame_samples = int(frame_samples or Config.CAPTURE_FRAME_SAMPLES)
        self.device = device if device is not None else Config.input_device()
        self._stream_factory = stream_factory or open_input_stream
        self._owner: Optional[_CaptureHandle] = None
        self._lock = threading.Lock()

    @property
    def holds_microphone(self) -> bool:
        with self._lock:
            return self._owner is not None

    def _acquire(self, handle: _CaptureHandle) -> None:
        with self._lock:
            if self._owner is not None:
                raise DeviceUnavailable("Microphone is already in use")
            self._owner = handle

    def _release_microphone(self, handle: _CaptureHandle) -> None:
        with self._lock:
            if self._owner is handle:
                self._owner = None

    def _open(self, handle: _CaptureHandle, blocksize: int) -> None:
        self._acquire(handle)
        try:
            stream = self._stream_factory(
                device=self.device,
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=blocksize,
                callback=handle._on_audio,
                finished_callback=handle._on_stream_finished,
            )
        except AssistantError:
            self._release_microphone(handle)
            raise
        except Exception as e:
            self._release_microphone(handle)
            raise _classify_device_error(e) from e
        handle._attach(stream)

    def start_clip_capture(self, on_terminated=None) -> ClipRecording:
        """Open the microphone for a voice message.

        Raises:
            PermissionDenied: If microphone access is refused
            DeviceUnavailable: If there is no usable input device
        """
        handle = ClipRecording(self, on_terminated)
        self._open(handle, blocksize=0)  # 0 lets PortAudio pick
        handle._start_ticker()
        logger.info("[CAPTURE] clip recording started")
        return handle

    def stop_clip_capture(self, handle: ClipRecording) -> EncodedClip:
        """Finish a recording and return it as a WAV clip. The device is released either way."""
        terminated = handle.terminated
        handle._release()
        if terminated:
            raise DeviceUnavailable("Recording ended early: input device failed")

        pcm16 = handle._take_pcm()
        duration = len(pcm16) / 2 / handle.sample_rate
        logger.info(f"[CAPTURE] clip recording stopped ({duration:.1f}s)")
        return EncodedClip(
            data=_encode_wav(pcm16, handle.sample_rate),
            mime_type="audio/wav",
            duration_seconds=duration,
        )

    def cancel_clip_capture(self, handle: ClipRecording) -> None:
        """Drop a recording without producing a clip or a termination callback."""
        handle._release()
        handle._take_pcm()
        logger.info("[CAPTURE] clip recording cancelled")

    def start_continuous_capture(self, on_frame: FrameCallback, on_terminated=None) -> ContinuousCapture:
        """Stream fixed-size frames of 16-bit mono PCM to on_frame until stopped."""
        handle = ContinuousCapture(self, on_frame, on_terminated)
        self._open(handle, blocksize=self.frame_samples)
        logger.info(f"[CAPTURE] continuous capture started sr={self.sample_rate} frame={self.frame_samples}")
        return handle

    def stop(self, handle: Optional[_CaptureHandle]) -> None:
        """Release the hardware held by a handle. Safe to call more than once."""
        if handle is None or not handle.active:
            return
        handle._release()
        logger.info("[CAPTURE] capture stopped")
