"""Gemini gateway: one-shot calls over the REST API, live sessions over websocket."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from sahayak.errors import GatewayError, MalformedResponse, NetworkError, PermissionDenied, ServiceError, Timeout
from sahayak.gateways.base_gateway import AssistantGateway, LiveSession, LiveSessionCallbacks
from sahayak.gateways.gemini_live import GeminiLiveSession
from sahayak.languages import Language, label_for
from sahayak.models import EligibilityVerdict, EncodedClip, SchemeCandidate, SchemeSuggestion
from sahayak.prompt import (
    build_document_check_prompt,
    build_search_prompt,
    build_suggestion_prompt,
    build_system_instruction,
    build_translate_prompt,
    build_user_turn,
)
from sahayak.schema import (
    SEARCH_SCHEMA,
    SUGGESTION_SCHEMA,
    VERDICT_SCHEMA,
    normalize_search_ids,
    normalize_suggestions,
    normalize_verdict,
    try_parse_json,
)

logger = logging.getLogger(__name__)


def _inline_part(clip: EncodedClip) -> Dict[str, Any]:
    return {"inlineData": {"mimeType": clip.mime_type, "data": clip.to_base64()}}


def _status_error(response: httpx.Response) -> GatewayError:
    code = response.status_code
    detail = response.text[:300]
    if code in (401, 403):
        return PermissionDenied(f"Gemini rejected the API key (HTTP {code}): {detail}")
    if code in (408, 504):
        return Timeout(f"Gemini timed out (HTTP {code})")
    return ServiceError(f"Gemini returned HTTP {code}: {detail}")


def _extract_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise MalformedResponse("Response body is not a JSON object")
    candidates = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise ServiceError(f"Prompt blocked by safety filters: {reason}")
        raise MalformedResponse("Response has no candidates")
    parts = ((candidates[0].get("content") or {}).get("parts") or [])
    return "".join([p.get("text", "") for p in parts if isinstance(p, dict)])


class GeminiGateway(AssistantGateway):
    """Google Gemini-backed assistant gateway."""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        fast_model: str = None,
        live_model: str = None,
        base_url: str = None,
        live_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ws_session_factory=None,
    ):
        """Initialize the Gemini gateway.

        Args:
            api_key: Gemini API key (defaults to Config.GEMINI_API_KEY)
            model: Model for chat and voice messages (defaults to Config.GEMINI_MODEL)
            fast_model: Model for search, document checks and translation
            live_model: Native-audio model for live sessions
            base_url: REST base URL
            live_url: Websocket URL of the live endpoint
            timeout: Seconds before a one-shot call fails with Timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
            ws_session_factory: Optional aiohttp.ClientSession factory for live sessions
        """
        from sahayak.config import Config

        self.api_key = api_key or Config.GEMINI_API_KEY
        self.model_name = model or Config.GEMINI_MODEL
        self.fast_model_name = fast_model or Config.GEMINI_FAST_MODEL
        self.live_model_name = live_model or Config.GEMINI_LIVE_MODEL
        self.base_url = (base_url or Config.GEMINI_BASE_URL).rstrip("/")
        self.live_url = live_url or Config.GEMINI_LIVE_URL
        self.timeout = float(timeout or Config.GATEWAY_TIMEOUT_SECONDS)
        self.capture_sample_rate = Config.CAPTURE_SAMPLE_RATE
        self._transport = transport
        self._ws_session_factory = ws_session_factory

    def _require_key(self) -> str:
        key = (self.api_key or "").strip()
        if not key:
            raise ServiceError(
                "GEMINI_API_KEY is not set. Add it to your .env file or environment variables."
            )
        return key

    async def _generate(
        self,
        model: str,
        parts: List[Dict[str, Any]],
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        api_key = self._require_key()

        # Gemini REST: POST /v1beta/models/{model}:generateContent
        url = f"{self.base_url}/v1beta/models/{model}:generateContent"
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, json=body, headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as e:
            raise Timeout(f"Gemini did not answer within {self.timeout:.0f}s") from e
        except httpx.HTTPStatusError as e:
            raise _status_error(e.response) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach Gemini: {e}") from e
        except ValueError as e:
            raise MalformedResponse("Gemini response body is not JSON") from e

        return _extract_text(data)

    async def send_one_shot(
        self,
        prompt: Optional[str] = None,
        audio: Optional[EncodedClip] = None,
        image: Optional[EncodedClip] = None,
        language: Language = Language.ENGLISH,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts: List[Dict[str, Any]] = []
        if audio is not None:
            parts.append(_inline_part(audio))
        if image is not None:
            parts.append(_inline_part(image))
        parts.append({"text": f"User Input: {build_user_turn(prompt, audio is not None)}"})

        text = await self._generate(
            self.model_name,
            parts,
            system_instruction=build_system_instruction(label_for(language), context),
        )
        return text.strip()

    async def semantic_search(self, query: str, candidates: Sequence[SchemeCandidate]) -> List[str]:
        if not query.strip() or not candidates:
            return []
        text = await self._generate(
            self.fast_model_name,
            [{"text": build_search_prompt(query, candidates)}],
            response_schema=SEARCH_SCHEMA,
        )
        return normalize_search_ids(try_parse_json(text), [c.id for c in candidates])

    async def check_document_eligibility(
        self,
        image: EncodedClip,
        scheme_name: str,
        criteria: Sequence[str],
        language: Language = Language.ENGLISH,
    ) -> EligibilityVerdict:
        text = await self._generate(
            self.fast_model_name,
            [
                _inline_part(image),
                {"text": build_document_check_prompt(scheme_name, list(criteria), label_for(language))},
            ],
            response_schema=VERDICT_SCHEMA,
        )
        return normalize_verdict(try_parse_json(text))

    async def suggest_schemes(self, profile: str) -> List[SchemeSuggestion]:
        text = await self._generate(
            self.fast_model_name,
            [{"text": build_suggestion_prompt(profile)}],
            response_schema=SUGGESTION_SCHEMA,
        )
        return normalize_suggestions(try_parse_json(text))

    async def translate(self, text: str, target_language: Language) -> str:
        translated = await self._generate(
            self.fast_model_name,
            [{"text": build_translate_prompt(text, label_for(target_language))}],
        )
        return translated.strip()

    async def open_live_session(
        self,
        instruction: str,
        language: Language,
        callbacks: LiveSessionCallbacks,
    ) -> LiveSession:
        session = GeminiLiveSession(
            url=self.live_url,
            api_key=self._require_key(),
            model=self.live_model_name,
            instruction=instruction,
            callbacks=callbacks,
            sample_rate=self.capture_sample_rate,
            session_factory=self._ws_session_factory,
        )
        logger.info(f"[LIVE] opening session model={self.live_model_name} language={language.value}")
        session.start()
        return session
