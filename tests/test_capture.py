"""Tests for microphone capture."""

import asyncio
import io
import wave

import numpy as np
import pytest

from fakes import wait_until
from sahayak.audio.capture import AudioCaptureController, _to_mono_int16
from sahayak.errors import DeviceUnavailable, PermissionDenied


def test_to_mono_int16_uses_first_channel():
    stereo = np.array([[0.5, -1.0], [-0.5, 1.0]], dtype=np.float32)

    pcm, rms = _to_mono_int16(stereo)

    samples = np.frombuffer(pcm, dtype="<i2")
    assert samples.tolist() == [16383, -16383]
    assert rms == pytest.approx(0.5, abs=1e-6)


def test_to_mono_int16_accepts_int16_input():
    pcm, _ = _to_mono_int16(np.array([16384, -16384], dtype=np.int16))

    assert np.frombuffer(pcm, dtype="<i2").tolist() == [16383, -16383]


@pytest.mark.asyncio
async def test_clip_capture_opens_mono_float_stream(capture, stream_factory):
    handle = capture.start_clip_capture()

    kwargs = stream_factory.last.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == "float32"
    assert kwargs["blocksize"] == 0

    capture.cancel_clip_capture(handle)


@pytest.mark.asyncio
async def test_microphone_is_exclusive(capture):
    handle = capture.start_clip_capture()

    with pytest.raises(DeviceUnavailable, match="already in use"):
        capture.start_continuous_capture(on_frame=lambda pcm: None)

    capture.cancel_clip_capture(handle)
    other = capture.start_continuous_capture(on_frame=lambda pcm: None)
    assert capture.holds_microphone
    capture.stop(other)


@pytest.mark.asyncio
async def test_stop_clip_capture_returns_wav(capture, stream_factory):
    handle = capture.start_clip_capture()
    stream_factory.last.feed([0.1] * 800)
    stream_factory.last.feed([0.2] * 800)

    clip = capture.stop_clip_capture(handle)

    assert clip.mime_type == "audio/wav"
    assert clip.duration_seconds == pytest.approx(0.1)
    with wave.open(io.BytesIO(clip.data), "rb") as w:
        assert w.getnchannels() == 1
        assert w.getsampwidth() == 2
        assert w.getnframes() == 1600
    assert not capture.holds_microphone
    assert stream_factory.last.stopped
    assert stream_factory.last.closed


@pytest.mark.asyncio
async def test_cancel_discards_audio(capture, stream_factory):
    handle = capture.start_clip_capture()
    stream_factory.last.feed([0.1] * 100)

    capture.cancel_clip_capture(handle)

    assert not handle.active
    assert not capture.holds_microphone
    assert handle._take_pcm() == b""


@pytest.mark.asyncio
async def test_factory_errors_are_classified(capture, stream_factory):
    stream_factory.error = RuntimeError("Permission denied")
    with pytest.raises(PermissionDenied):
        capture.start_clip_capture()

    stream_factory.error = RuntimeError("Invalid number of channels")
    with pytest.raises(DeviceUnavailable):
        capture.start_clip_capture()

    assert not capture.holds_microphone


@pytest.mark.asyncio
async def test_terminated_clip_reports_device_failure(capture, stream_factory):
    terminated = []
    handle = capture.start_clip_capture(on_terminated=terminated.append)

    stream_factory.last.finish()
    await wait_until(lambda: terminated)

    assert terminated == [handle]
    assert not capture.holds_microphone
    with pytest.raises(DeviceUnavailable):
        capture.stop_clip_capture(handle)


@pytest.mark.asyncio
async def test_deliberate_stop_does_not_report_termination(capture, stream_factory):
    terminated = []
    handle = capture.start_clip_capture(on_terminated=terminated.append)

    capture.cancel_clip_capture(handle)
    stream_factory.last.finish()
    await asyncio.sleep(0)

    assert terminated == []


@pytest.mark.asyncio
async def test_continuous_capture_delivers_pcm_frames(capture, stream_factory):
    frames = []
    handle = capture.start_continuous_capture(on_frame=frames.append)
    assert stream_factory.last.kwargs["blocksize"] == 4

    stream_factory.last.feed([0.0, 0.5, -0.5, 0.0])
    await wait_until(lambda: frames)

    assert len(frames[0]) == 8
    assert handle.frames_captured == 1

    capture.stop(handle)
    stream_factory.last.feed([0.0, 0.5, -0.5, 0.0])
    await asyncio.sleep(0)
    assert len(frames) == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent(capture):
    handle = capture.start_continuous_capture(on_frame=lambda pcm: None)

    capture.stop(handle)
    capture.stop(handle)
    capture.stop(None)

    assert not capture.holds_microphone


def test_device_defaults_come_from_config(stream_factory):
    controller = AudioCaptureController(stream_factory=stream_factory)

    assert controller.sample_rate == 16000
    assert controller.frame_samples == 4096
