from __future__ import annotations
from typing import Any, Dict, Iterable, List
import json

from sahayak.errors import MalformedResponse
from sahayak.models import EligibilityVerdict, SchemeSuggestion


def try_parse_json(text: str) -> Any:
    """
    Best-effort JSON extraction (handles occasional extra text or code fences
    around the JSON). Raises MalformedResponse when nothing parses.
    """
    if text is None:
        raise MalformedResponse("Empty response")
    s = text.strip()
    if not s:
        raise MalformedResponse("Empty response")

    try:
        return json.loads(s)
    except ValueError:
        pass

    # try to extract the outermost {...} or [...]
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = s.find(open_ch)
        end = s.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(s[start:end + 1])
            except ValueError:
                continue

    raise MalformedResponse(f"Could not parse structured response: {s[:200]!r}")


def normalize_verdict(obj: Any) -> EligibilityVerdict:
    """
    Ensure a stable verdict shape so callers never depend on provider formatting.
    """
    if not isinstance(obj, dict):
        raise MalformedResponse("Eligibility verdict is not a JSON object")
    if "isEligible" not in obj and "is_eligible" not in obj:
        raise MalformedResponse("Eligibility verdict is missing isEligible")

    eligible = obj.get("isEligible", obj.get("is_eligible"))
    if isinstance(eligible, str):
        eligible = eligible.strip().lower() in ("true", "yes", "1")

    try:
        score = float(obj.get("confidenceScore", obj.get("confidence_score", 0)) or 0)
    except (TypeError, ValueError):
        score = 0.0
    score = max(0.0, min(100.0, score))

    missing = obj.get("missingInformation", obj.get("missing_information", []))
    if isinstance(missing, str):
        missing = [missing]
    if not isinstance(missing, list):
        missing = []

    return EligibilityVerdict(
        is_eligible=bool(eligible),
        confidence_score=score,
        detected_document_type=str(obj.get("detectedDocumentType", obj.get("detected_document_type", ""))).strip() or "Unknown",
        observation=str(obj.get("observation", "")).strip(),
        missing_information=[str(x).strip() for x in missing if str(x).strip()],
    )


def normalize_search_ids(obj: Any, candidate_ids: Iterable[str]) -> List[str]:
    """Keep only known candidate ids, in the ranked order given, without duplicates."""
    if not isinstance(obj, list):
        raise MalformedResponse("Search result is not a JSON array")
    known = set(candidate_ids)
    out: List[str] = []
    for x in obj:
        sid = str(x).strip()
        if sid in known and sid not in out:
            out.append(sid)
    return out


def normalize_suggestions(obj: Any) -> List[SchemeSuggestion]:
    if not isinstance(obj, list):
        raise MalformedResponse("Scheme suggestions are not a JSON array")
    out: List[SchemeSuggestion] = []
    for item in obj:
        if not isinstance(item, dict):
            continue
        name = str(item.get("schemeName", "")).strip()
        if not name:
            continue
        out.append(SchemeSuggestion(
            scheme_name=name,
            reason=str(item.get("reason", "")).strip(),
            next_steps=str(item.get("nextSteps", "")).strip(),
        ))
    return out


# Response schemas passed to generateContent so the service answers in JSON.
VERDICT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "isEligible": {"type": "BOOLEAN"},
        "confidenceScore": {"type": "NUMBER"},
        "detectedDocumentType": {"type": "STRING"},
        "observation": {"type": "STRING"},
        "missingInformation": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["isEligible", "observation", "detectedDocumentType"],
}

SEARCH_SCHEMA: Dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}

SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "schemeName": {"type": "STRING"},
            "reason": {"type": "STRING"},
            "nextSteps": {"type": "STRING"},
        },
        "required": ["schemeName", "reason"],
    },
}
