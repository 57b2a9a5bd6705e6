"""Append-only transcript of an assistant session."""

from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sahayak.models import Speaker, TranscriptEntry


class TranscriptLog:
    """Ordered record of exchanged messages.

    Entries are appended in the order their triggering events resolve and are
    never reordered or mutated. Only the session appends; anyone may read.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(tuple(self._entries))

    @property
    def entries(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def append(self, speaker: Speaker, text: str, is_audio: bool = False) -> TranscriptEntry:
        entry = TranscriptEntry(speaker=speaker, text=text, is_audio=is_audio)
        self._entries.append(entry)
        return entry

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self._entries]

    def export_text(
        self,
        portal_name: str,
        assistant_name: str,
        language_label: str,
        generated_at: Optional[datetime] = None,
    ) -> str:
        """Render the flat text chat log offered for download."""
        generated_at = generated_at or datetime.now()
        header = (
            f"{portal_name} - CHAT HISTORY\n"
            f"Generated: {generated_at.strftime('%m/%d/%Y, %I:%M:%S %p')}\n"
            f"Language: {language_label}\n\n"
        )
        lines = []
        for e in self._entries:
            who = "CITIZEN" if e.speaker == Speaker.CITIZEN else assistant_name.upper()
            lines.append(f"[{e.created_at.strftime('%I:%M:%S %p')}] {who}: {e.content}")
        return header + "\n\n".join(lines)


def export_filename(when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"Samriddhi_Chat_Log_{when.strftime('%Y-%m-%d')}.txt"
