"""Conversational session orchestrator for the assistant panel.

One AssistantSession exists per open panel. It owns the mode, the live
connection status, the transcript and the guidance context, and it is the
only place that touches the microphone, the speaker and the gateway on the
citizen's behalf.

Every asynchronous completion (gateway replies, live-session events, capture
callbacks) checks that the session generation or live connection it was
started for is still current before acting, so nothing fires into a torn-down
session.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from sahayak.audio.capture import AudioCaptureController, ClipRecording, ContinuousCapture
from sahayak.audio.playback import AudioOutput, PlaybackScheduler
from sahayak.config import Config
from sahayak.errors import AssistantError, DeviceUnavailable, ServiceError, Timeout
from sahayak.events import EventHub, GuidanceRequest
from sahayak.gateways.base_gateway import AssistantGateway, LiveSession, LiveSessionCallbacks
from sahayak.languages import Language, apology_for, label_for, parse_language
from sahayak.models import AUDIO_PLACEHOLDER, EncodedClip, Speaker, TranscriptEntry
from sahayak.prompt import build_guidance_announcement, build_guidance_instruction, build_live_instruction
from sahayak.transcript import TranscriptLog

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CLOSED = "CLOSED"
    TEXT_IDLE = "TEXT_IDLE"
    TEXT_RECORDING = "TEXT_RECORDING"
    TEXT_AWAITING_RESPONSE = "TEXT_AWAITING_RESPONSE"
    VOICE_IDLE = "VOICE_IDLE"  # voice mode without a live connection (after an error or remote close)
    VOICE_CONNECTING = "VOICE_CONNECTING"
    VOICE_CONNECTED = "VOICE_CONNECTED"


TEXT_STATES = {SessionState.TEXT_IDLE, SessionState.TEXT_RECORDING, SessionState.TEXT_AWAITING_RESPONSE}
VOICE_STATES = {SessionState.VOICE_IDLE, SessionState.VOICE_CONNECTING, SessionState.VOICE_CONNECTED}


class Mode(str, Enum):
    TEXT = "TEXT"
    VOICE = "VOICE"


class ConnectionStatus(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


SessionListener = Callable[[Dict[str, Any]], None]


@dataclass
class _LiveConnection:
    id: int
    capture: Optional[ContinuousCapture] = None
    output: Any = None
    session: Optional[LiveSession] = None
    streaming: bool = False


class AssistantSession:
    """State machine behind the assistant panel."""

    def __init__(
        self,
        gateway: AssistantGateway,
        capture: Optional[AudioCaptureController] = None,
        language: Union[Language, str] = Language.ENGLISH,
        *,
        playback: Optional[PlaybackScheduler] = None,
        output_factory: Optional[Callable[[PlaybackScheduler], Any]] = None,
        timeout: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            gateway: Remote assistant service
            capture: Microphone controller (defaults to the system microphone)
            language: Initial response language; refreshed with update_language()
            playback: Scheduler for live-session speech
            output_factory: Builds the output device for a scheduler (start()/close())
            timeout: Seconds before a one-shot reply is abandoned
            context: Facts forwarded with every one-shot message
        """
        self._gateway = gateway
        self._capture = capture or AudioCaptureController()
        self.playback = playback or PlaybackScheduler()
        self._output_factory = output_factory or AudioOutput
        self.language = parse_language(language)
        self.timeout = float(timeout or Config.GATEWAY_TIMEOUT_SECONDS)
        self.context = context

        self.state = SessionState.CLOSED
        self.connection_status = ConnectionStatus.IDLE
        self.guidance_context: Optional[str] = None
        self._guidance_instruction: Optional[str] = None
        self.transcript = TranscriptLog()
        self.last_error: Optional[AssistantError] = None

        self._generation = 0
        self._live_seq = 0
        self._live: Optional[_LiveConnection] = None
        self._recording: Optional[ClipRecording] = None
        self._pending_replies = 0
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[SessionListener] = []

    # ------------------------------------------------------------------ views

    @property
    def mode(self) -> Mode:
        return Mode.VOICE if self.state in VOICE_STATES else Mode.TEXT

    @property
    def is_open(self) -> bool:
        return self.state != SessionState.CLOSED

    @property
    def recording_seconds(self) -> int:
        return self._recording.elapsed_seconds if self._recording is not None else 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "mode": self.mode.value,
            "connection_status": self.connection_status.value,
            "language": self.language.value,
            "language_label": label_for(self.language),
            "guidance_context": self.guidance_context,
            "recording_seconds": self.recording_seconds,
            "pending_replies": self._pending_replies,
            "transcript_length": len(self.transcript),
            "last_error": str(self.last_error) if self.last_error else None,
        }

    def export_transcript(self, generated_at: Optional[datetime] = None) -> str:
        return self.transcript.export_text(
            portal_name=Config.PORTAL_NAME,
            assistant_name=Config.ASSISTANT_NAME,
            language_label=label_for(self.language),
            generated_at=generated_at,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Receive {"type": "entry", ...} and {"type": "state", ...} events. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def attach(self, hub: EventHub) -> List[Callable[[], None]]:
        """Follow the hosting application's open and guidance requests."""

        async def on_guidance(request: GuidanceRequest):
            await self.external_guidance_trigger(request.title, request.procedure)

        return [
            hub.subscribe_open_requested(self.open),
            hub.subscribe_guidance_requested(on_guidance),
        ]

    def _publish(self, event: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("[SESSION] listener failed")

    def _set_state(self, state: SessionState) -> None:
        if state != self.state:
            logger.info(f"[SESSION] {self.state.value} -> {state.value}")
            self.state = state
        self._publish({"type": "state", **self.snapshot()})

    def _append(self, speaker: Speaker, text: str, is_audio: bool = False) -> TranscriptEntry:
        entry = self.transcript.append(speaker, text, is_audio=is_audio)
        self._publish({"type": "entry", "entry": entry.to_dict()})
        return entry

    def _text_resting_state(self) -> SessionState:
        return SessionState.TEXT_AWAITING_RESPONSE if self._pending_replies else SessionState.TEXT_IDLE

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------- lifecycle

    def open(self) -> None:
        """CLOSED -> TEXT_IDLE with a fresh transcript."""
        if self.state != SessionState.CLOSED:
            return
        self._generation += 1
        self.transcript = TranscriptLog()
        self.connection_status = ConnectionStatus.IDLE
        self.last_error = None
        self._pending_replies = 0
        self._set_state(SessionState.TEXT_IDLE)

    async def close(self) -> None:
        """Any state -> CLOSED once every resource has been released."""
        if self.state == SessionState.CLOSED:
            return
        # Invalidate in-flight replies before awaiting anything
        self._generation += 1
        self._pending_replies = 0
        await self.teardown()
        self.guidance_context = None
        self._guidance_instruction = None
        self.connection_status = ConnectionStatus.IDLE
        self._set_state(SessionState.CLOSED)

    async def teardown(self) -> None:
        """Release the recording, the live connection, the microphone and the speaker."""
        self._cancel_recording()
        await self._drop_live()

    def update_language(self, language: Union[Language, str]) -> None:
        """Use a new response language from the next gateway call on."""
        self.language = parse_language(language)
        logger.info(f"[SESSION] language set to {self.language.value}")
        if self.is_open:
            self._set_state(self.state)

    # ------------------------------------------------------------- text mode

    async def send_text(self, message: str) -> Optional[TranscriptEntry]:
        """Send a typed message. Returns the assistant entry, or None when nothing was sent."""
        text = (message or "").strip()
        if not text:
            return None
        if self.state not in (SessionState.TEXT_IDLE, SessionState.TEXT_AWAITING_RESPONSE):
            logger.info(f"[SESSION] send_text ignored in {self.state.value}")
            return None
        self._append(Speaker.CITIZEN, text)
        return await self._ask(prompt=text)

    async def start_text_recording(self) -> bool:
        """Start a voice message. Returns False (state unchanged) if the microphone is unavailable."""
        if self.state not in (SessionState.TEXT_IDLE, SessionState.TEXT_AWAITING_RESPONSE):
            return False
        try:
            recording = self._capture.start_clip_capture(on_terminated=self._on_recording_terminated)
        except AssistantError as exc:
            logger.warning(f"[SESSION] could not start recording: {exc}")
            self.last_error = exc
            return False
        self._recording = recording
        self.last_error = None
        self._set_state(SessionState.TEXT_RECORDING)
        return True

    async def stop_text_recording(self) -> Optional[TranscriptEntry]:
        """Send the voice message. Returns the assistant entry appended for it."""
        if self.state != SessionState.TEXT_RECORDING or self._recording is None:
            return None
        recording, self._recording = self._recording, None
        try:
            clip = self._capture.stop_clip_capture(recording)
        except AssistantError as exc:
            logger.warning(f"[SESSION] recording failed: {exc}")
            self.last_error = exc
            self._set_state(self._text_resting_state())
            return None
        self._append(Speaker.CITIZEN, AUDIO_PLACEHOLDER, is_audio=True)
        return await self._ask(audio=clip)

    async def cancel_text_recording(self) -> None:
        if self.state != SessionState.TEXT_RECORDING:
            return
        self._cancel_recording()
        self._set_state(self._text_resting_state())

    def _cancel_recording(self) -> None:
        recording, self._recording = self._recording, None
        if recording is not None:
            self._capture.cancel_clip_capture(recording)

    def _on_recording_terminated(self, recording: ClipRecording) -> None:
        if self._recording is not recording:
            return
        self._recording = None
        self.last_error = DeviceUnavailable("Recording stopped: input device failed")
        self._set_state(self._text_resting_state())

    async def _ask(self, prompt: Optional[str] = None, audio: Optional[EncodedClip] = None) -> Optional[TranscriptEntry]:
        generation = self._generation
        self._pending_replies += 1
        if self.state in (SessionState.TEXT_IDLE, SessionState.TEXT_RECORDING):
            self._set_state(SessionState.TEXT_AWAITING_RESPONSE)

        try:
            reply = await asyncio.wait_for(
                self._gateway.send_one_shot(
                    prompt=prompt,
                    audio=audio,
                    language=self.language,
                    context=self.context,
                ),
                timeout=self.timeout,
            )
            text = (reply or "").strip() or apology_for(self.language)
        except asyncio.TimeoutError:
            logger.warning(f"[SESSION] gateway reply timed out after {self.timeout:.0f}s")
            self.last_error = Timeout(f"No reply within {self.timeout:.0f}s")
            text = apology_for(self.language)
        except AssistantError as exc:
            logger.warning(f"[SESSION] gateway call failed: {exc}")
            self.last_error = exc
            text = apology_for(self.language)
        except Exception as exc:
            logger.exception("[SESSION] unexpected gateway failure")
            self.last_error = ServiceError(f"Unexpected gateway failure: {exc}")
            text = apology_for(self.language)
        finally:
            if generation == self._generation:
                self._pending_replies -= 1

        if generation != self._generation:
            logger.info("[SESSION] dropping reply for a closed session")
            return None

        entry = self._append(Speaker.ASSISTANT, text)
        if self.state == SessionState.TEXT_AWAITING_RESPONSE and not self._pending_replies:
            self._set_state(SessionState.TEXT_IDLE)
        return entry

    # ------------------------------------------------------------ voice mode

    async def switch_to_voice(self) -> None:
        """Start a live voice session. No-op while one is connecting or connected."""
        if self.state in (SessionState.CLOSED, SessionState.VOICE_CONNECTING, SessionState.VOICE_CONNECTED):
            return
        self._cancel_recording()
        await self._connect_live()

    async def switch_to_text(self) -> None:
        """Leave voice mode; the live connection is gone before the state changes."""
        if self.state not in VOICE_STATES:
            return
        await self.teardown()
        self.connection_status = ConnectionStatus.IDLE
        self._set_state(self._text_resting_state())

    async def external_guidance_trigger(self, title: str, procedure: str) -> None:
        """Start a guided voice call for an external task, e.g. a helpline procedure."""
        if self.state == SessionState.CLOSED:
            self.open()
        await self.teardown()
        self.guidance_context = title
        self._guidance_instruction = build_guidance_instruction(title, procedure)
        self._append(Speaker.ASSISTANT, build_guidance_announcement(title))
        await self._connect_live()

    def dismiss_guidance(self) -> None:
        self.guidance_context = None
        self._guidance_instruction = None
        if self.is_open:
            self._set_state(self.state)

    def _is_current(self, live: _LiveConnection) -> bool:
        return self._live is live

    async def _connect_live(self) -> None:
        self._live_seq += 1
        live = _LiveConnection(id=self._live_seq)
        self._live = live
        self.connection_status = ConnectionStatus.CONNECTING
        self._set_state(SessionState.VOICE_CONNECTING)

        instruction = self._guidance_instruction or build_live_instruction(label_for(self.language))

        try:
            live.capture = self._capture.start_continuous_capture(
                on_frame=lambda pcm: self._on_live_frame(live, pcm),
                on_terminated=lambda _handle: self._on_live_capture_terminated(live),
            )
            live.output = self._output_factory(self.playback)
            live.output.start()
        except AssistantError as exc:
            await self._fail_live(live, exc)
            return

        callbacks = LiveSessionCallbacks(
            on_open=lambda: self._on_live_open(live),
            on_audio_chunk=lambda pcm: self._on_live_audio(live, pcm),
            on_transcription_text=lambda text: self._on_live_transcription(live, text),
            on_interrupted=lambda: self._on_live_interrupted(live),
            on_error=lambda exc: self._on_live_error(live, exc),
            on_close=lambda: self._on_live_close(live),
        )
        try:
            session = await self._gateway.open_live_session(instruction, self.language, callbacks)
        except AssistantError as exc:
            await self._fail_live(live, exc)
            return

        if not self._is_current(live):
            logger.info(f"[SESSION] live connection {live.id} cancelled while connecting")
            await session.close()
            return
        live.session = session

    async def _drop_live(self) -> None:
        live, self._live = self._live, None
        if live is None:
            return
        live.streaming = False
        try:
            self._capture.stop(live.capture)
        finally:
            self.playback.interrupt()
            if live.output is not None:
                live.output.close()
            if live.session is not None:
                await live.session.close()
        logger.info(f"[SESSION] live connection {live.id} released")

    async def _fail_live(self, live: _LiveConnection, exc: Exception) -> None:
        if not self._is_current(live):
            return
        logger.warning(f"[SESSION] live connection {live.id} failed: {exc}")
        self.last_error = exc if isinstance(exc, AssistantError) else AssistantError(str(exc))
        await self._drop_live()
        self.connection_status = ConnectionStatus.ERROR
        self._set_state(SessionState.VOICE_IDLE)

    async def _remote_closed(self, live: _LiveConnection) -> None:
        if not self._is_current(live):
            return
        await self._drop_live()
        self.connection_status = ConnectionStatus.IDLE
        self._set_state(SessionState.VOICE_IDLE)

    async def _capture_lost(self, live: _LiveConnection) -> None:
        if not self._is_current(live):
            return
        self.last_error = DeviceUnavailable("Microphone stopped during the voice session")
        await self.switch_to_text()

    def _on_live_open(self, live: _LiveConnection) -> None:
        if not self._is_current(live):
            # Late acknowledgment for a connection that was cancelled
            if live.session is not None:
                self._spawn(live.session.close())
            return
        live.streaming = True
        self.connection_status = ConnectionStatus.CONNECTED
        self._set_state(SessionState.VOICE_CONNECTED)

    def _on_live_frame(self, live: _LiveConnection, pcm16: bytes) -> None:
        if self._is_current(live) and live.streaming and live.session is not None:
            live.session.send_audio_frame(pcm16)

    def _on_live_audio(self, live: _LiveConnection, pcm16: bytes) -> None:
        if self._is_current(live) and live.streaming:
            self.playback.enqueue(pcm16)

    def _on_live_transcription(self, live: _LiveConnection, text: str) -> None:
        if self._is_current(live) and text.strip():
            self._append(Speaker.ASSISTANT, text.strip())

    def _on_live_interrupted(self, live: _LiveConnection) -> None:
        # Barge-in: the citizen started speaking over the assistant
        if self._is_current(live):
            self.playback.interrupt()

    def _on_live_error(self, live: _LiveConnection, exc: Exception) -> None:
        if self._is_current(live):
            self._spawn(self._fail_live(live, exc))

    def _on_live_close(self, live: _LiveConnection) -> None:
        if self._is_current(live):
            self._spawn(self._remote_closed(live))

    def _on_live_capture_terminated(self, live: _LiveConnection) -> None:
        if self._is_current(live):
            self._spawn(self._capture_lost(live))
