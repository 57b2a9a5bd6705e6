"""Audio hardware: microphone capture and speech playback."""

from sahayak.audio.capture import AudioCaptureController, ClipRecording, ContinuousCapture, list_input_devices
from sahayak.audio.playback import AudioOutput, PlaybackScheduler, decode_pcm16


__all__ = [
    "AudioCaptureController",
    "AudioOutput",
    "ClipRecording",
    "ContinuousCapture",
    "PlaybackScheduler",
    "decode_pcm16",
    "list_input_devices",
]
