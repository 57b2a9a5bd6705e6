"""Test doubles for the audio hardware and the remote assistant service."""

import asyncio
from typing import Any, Dict, List, Optional

import numpy as np

from sahayak.gateways.base_gateway import AssistantGateway, LiveSession, LiveSessionCallbacks
from sahayak.languages import Language
from sahayak.models import EligibilityVerdict, SchemeSuggestion


class FakeStream:
    """Stands in for a started sounddevice stream."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.stopped = False
        self.closed = False

    def stop(self):
        self.stopped = True

    def close(self):
        self.closed = True

    def feed(self, samples):
        """Deliver one block to the stream callback, as PortAudio would."""
        data = np.asarray(samples, dtype=np.float32).reshape(-1, 1)
        self.kwargs["callback"](data, data.shape[0], None, None)

    def finish(self):
        """Simulate the device going away."""
        self.kwargs["finished_callback"]()


class FakeStreamFactory:
    def __init__(self):
        self.streams: List[FakeStream] = []
        self.error: Optional[Exception] = None

    def __call__(self, **kwargs):
        if self.error is not None:
            raise self.error
        stream = FakeStream(**kwargs)
        self.streams.append(stream)
        return stream

    @property
    def last(self) -> FakeStream:
        return self.streams[-1]


class FakeOutput:
    def __init__(self, scheduler):
        self.scheduler = scheduler
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def close(self):
        self.closed = True


class FakeLiveSession(LiveSession):
    def __init__(self, instruction: str, language: Language, callbacks: LiveSessionCallbacks):
        self.instruction = instruction
        self.language = language
        self.callbacks = callbacks
        self.frames: List[bytes] = []
        self.closed = False

    def send_audio_frame(self, pcm16: bytes) -> None:
        if not self.closed:
            self.frames.append(pcm16)

    async def close(self) -> None:
        self.closed = True


class FakeGateway(AssistantGateway):
    """Scriptable gateway.

    replies[i] answers the i-th one-shot call (a string or an exception to
    raise); gates[i], when set, holds the i-th call until the event fires.
    """

    def __init__(self):
        self.replies: List[Any] = []
        self.gates: Dict[int, asyncio.Event] = {}
        self.calls: List[Dict[str, Any]] = []
        self.live_requests: List[Dict[str, Any]] = []
        self.live_sessions: List[FakeLiveSession] = []
        self.live_gate: Optional[asyncio.Event] = None
        self.live_error: Optional[Exception] = None
        self.error: Optional[Exception] = None

    async def send_one_shot(self, prompt=None, audio=None, image=None, language=Language.ENGLISH, context=None):
        index = len(self.calls)
        self.calls.append({"prompt": prompt, "audio": audio, "image": image, "language": language, "context": context})
        gate = self.gates.get(index)
        if gate is not None:
            await gate.wait()
        reply = self.replies[index] if index < len(self.replies) else f"reply to {prompt}"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def semantic_search(self, query, candidates):
        if self.error is not None:
            raise self.error
        return [c.id for c in candidates if query.lower() in c.name.lower()]

    async def check_document_eligibility(self, image, scheme_name, criteria, language=Language.ENGLISH):
        if self.error is not None:
            raise self.error
        return EligibilityVerdict(
            is_eligible=True,
            confidence_score=88.0,
            detected_document_type="Income Certificate",
            observation=f"{len(image.data)} bytes checked for {scheme_name}",
        )

    async def suggest_schemes(self, profile):
        if self.error is not None:
            raise self.error
        return [SchemeSuggestion(scheme_name="PM-KISAN", reason="Farmer", next_steps="Apply online")]

    async def translate(self, text, target_language):
        if self.error is not None:
            raise self.error
        return f"[{target_language.value}] {text}"

    async def open_live_session(self, instruction, language, callbacks):
        self.live_requests.append({"instruction": instruction, "language": language})
        if self.live_gate is not None:
            await self.live_gate.wait()
        if self.live_error is not None:
            raise self.live_error
        session = FakeLiveSession(instruction, language, callbacks)
        self.live_sessions.append(session)
        return session


async def wait_until(predicate, ticks: int = 200):
    """Yield to the event loop until predicate() holds."""
    for _ in range(ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    assert predicate(), "condition not reached"


