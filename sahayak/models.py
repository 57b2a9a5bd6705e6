"""Data models for the Samriddhi Sahayak assistant."""

import base64
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional


AUDIO_PLACEHOLDER = "Voice Message"


class Speaker(str, Enum):
    CITIZEN = "CITIZEN"
    ASSISTANT = "ASSISTANT"


@dataclass(frozen=True)
class TranscriptEntry:
    """One exchanged message. Audio payloads are not kept, only a placeholder."""
    speaker: Speaker
    text: str
    is_audio: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def content(self) -> str:
        return AUDIO_PLACEHOLDER if self.is_audio else self.text

    def to_dict(self):
        return {
            "speaker": self.speaker.value,
            "text": self.content,
            "is_audio": self.is_audio,
            "ts": self.created_at.timestamp(),
            "time": self.created_at.strftime("%I:%M:%S %p"),
        }


@dataclass
class EncodedClip:
    """A finished recording, ready to be sent inline to the gateway."""
    data: bytes
    mime_type: str  # e.g. "audio/wav", "image/jpeg"
    duration_seconds: Optional[float] = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class SchemeCandidate:
    id: str
    name: str
    description: str = ""

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass
class SchemeSuggestion:
    scheme_name: str
    reason: str
    next_steps: str = ""

    def to_dict(self):
        return {
            "scheme_name": self.scheme_name,
            "reason": self.reason,
            "next_steps": self.next_steps,
        }


@dataclass
class EligibilityVerdict:
    """Result of checking a document image against a scheme's criteria."""
    is_eligible: bool
    confidence_score: float  # 0-100
    detected_document_type: str
    observation: str
    missing_information: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "is_eligible": self.is_eligible,
            "confidence_score": self.confidence_score,
            "detected_document_type": self.detected_document_type,
            "observation": self.observation,
            "missing_information": list(self.missing_information),
        }


@dataclass
class Notification:
    """Pushed by sibling features (grievances, health camps) to the portal header."""
    title: str
    message: str
    type: Literal["INFO", "SUCCESS", "ALERT"] = "INFO"
    ts: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "ts": self.ts,
        }
