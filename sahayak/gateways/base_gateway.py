"""Abstract base classes for remote assistant gateways."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sahayak.languages import Language
from sahayak.models import EligibilityVerdict, EncodedClip, SchemeCandidate, SchemeSuggestion


def _noop(*args, **kwargs):
    return None


@dataclass
class LiveSessionCallbacks:
    """Events a live session reports back to its owner, all on the event loop."""
    on_open: Callable[[], None] = _noop
    on_audio_chunk: Callable[[bytes], None] = _noop
    on_transcription_text: Callable[[str], None] = _noop
    on_interrupted: Callable[[], None] = _noop
    on_error: Callable[[Exception], None] = _noop
    on_close: Callable[[], None] = _noop


class LiveSession(ABC):
    """A persistent bidirectional voice session."""

    @abstractmethod
    def send_audio_frame(self, pcm16: bytes) -> None:
        """Queue one frame of 16 kHz mono PCM for the service. Ignored once closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Terminate the session. No callbacks fire after this returns."""
        pass


class AssistantGateway(ABC):
    """Boundary to the generative-AI service.

    Every method raises a subclass of sahayak.errors.AssistantError on failure:
    PermissionDenied, NetworkError, ServiceError (MalformedResponse) or Timeout.
    """

    @abstractmethod
    async def send_one_shot(
        self,
        prompt: Optional[str] = None,
        audio: Optional[EncodedClip] = None,
        image: Optional[EncodedClip] = None,
        language: Language = Language.ENGLISH,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Single request/response for a text message, a voice message, or both.

        Args:
            prompt: Typed message, if any
            audio: Recorded voice message, if any
            image: Attached image, if any
            language: Language the reply must be written in
            context: Extra facts the assistant may rely on

        Returns:
            Assistant's response text
        """
        pass

    @abstractmethod
    async def semantic_search(self, query: str, candidates: Sequence[SchemeCandidate]) -> List[str]:
        """Ids of the candidates relevant to the query, most relevant first. May be empty."""
        pass

    @abstractmethod
    async def check_document_eligibility(
        self,
        image: EncodedClip,
        scheme_name: str,
        criteria: Sequence[str],
        language: Language = Language.ENGLISH,
    ) -> EligibilityVerdict:
        pass

    @abstractmethod
    async def suggest_schemes(self, profile: str) -> List[SchemeSuggestion]:
        pass

    @abstractmethod
    async def translate(self, text: str, target_language: Language) -> str:
        pass

    @abstractmethod
    async def open_live_session(
        self,
        instruction: str,
        language: Language,
        callbacks: LiveSessionCallbacks,
    ) -> LiveSession:
        """Start a live voice session.

        Returns as soon as the session is being set up; callbacks.on_open fires
        once the service acknowledges it.
        """
        pass
