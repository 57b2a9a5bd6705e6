"""Gemini Live session over a raw websocket (BidiGenerateContent)."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from sahayak.errors import AssistantError, NetworkError, PermissionDenied, ServiceError
from sahayak.gateways.base_gateway import LiveSession, LiveSessionCallbacks

logger = logging.getLogger(__name__)

# Outbound frames kept while the socket is slow; oldest dropped beyond this.
MAX_PENDING_FRAMES = 200


def _default_session_factory() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))


class GeminiLiveSession(LiveSession):
    """
    One live voice session:
      - sends the setup message, then streams microphone frames as realtime input
      - reports setupComplete, audio chunks, output transcription and
        interruptions through the callbacks
    No callback fires once close() has been called.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        model: str,
        instruction: str,
        callbacks: LiveSessionCallbacks,
        sample_rate: int = 16000,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
        max_pending: int = MAX_PENDING_FRAMES,
    ):
        self._url = url
        self._api_key = api_key
        self._model = model
        self._instruction = instruction
        self._callbacks = callbacks
        self._sample_rate = int(sample_rate)
        self._session_factory = session_factory or _default_session_factory
        self._max_pending = int(max_pending)

        self._queue: "asyncio.Queue[bytes]" = asyncio.Queue()
        self._runner: Optional[asyncio.Task] = None
        self._closed = False
        self.opened = False

        # Stats
        self.bytes_sent = 0
        self.msgs_recv = 0
        self.queue_drops = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def setup_message(self) -> Dict[str, Any]:
        return {
            "setup": {
                "model": f"models/{self._model}",
                "generationConfig": {"responseModalities": ["AUDIO"]},
                "systemInstruction": {"parts": [{"text": self._instruction}]},
                "outputAudioTranscription": {},
            }
        }

    def start(self) -> None:
        self._runner = asyncio.get_running_loop().create_task(self._run())

    def send_audio_frame(self, pcm16: bytes) -> None:
        if self._closed:
            return
        # backpressure: drop oldest if behind to keep audio current
        if self._queue.qsize() >= self._max_pending:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self.queue_drops += 1
        self._queue.put_nowait(pcm16)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        logger.info(f"[LIVE] session closed (sent={self.bytes_sent}B recv={self.msgs_recv} drops={self.queue_drops})")

    def _emit(self, callback: Callable[..., None], *args) -> None:
        if self._closed:
            return
        callback(*args)

    async def _run(self) -> None:
        url = f"{self._url}?key={self._api_key}"
        try:
            async with self._session_factory() as http:
                async with http.ws_connect(url, heartbeat=20) as ws:
                    await ws.send_json(self.setup_message())

                    tasks = [
                        asyncio.create_task(self._sender(ws)),
                        asyncio.create_task(self._receiver(ws)),
                    ]
                    try:
                        done, pending = await asyncio.wait(set(tasks), return_when=asyncio.FIRST_COMPLETED)
                    finally:
                        for t in tasks:
                            t.cancel()
                        await asyncio.gather(*tasks, return_exceptions=True)
                    for t in done:
                        exc = t.exception()
                        if exc:
                            raise exc
        except asyncio.CancelledError:
            raise
        except aiohttp.WSServerHandshakeError as e:
            if e.status in (401, 403):
                self._fail(PermissionDenied(f"Live session rejected (HTTP {e.status})"))
            else:
                self._fail(ServiceError(f"Live session handshake failed (HTTP {e.status})"))
        except aiohttp.ClientError as e:
            self._fail(NetworkError(f"Live session connection failed: {e}"))
        except AssistantError as e:
            self._fail(e)
        except Exception as e:
            logger.exception("[LIVE] unexpected session failure")
            self._fail(ServiceError(f"Live session failed: {e!r}"))
        else:
            logger.info("[LIVE] remote closed the session")
            self._emit(self._callbacks.on_close)

    def _fail(self, exc: AssistantError) -> None:
        logger.warning(f"[LIVE] session error: {exc}")
        self._emit(self._callbacks.on_error, exc)

    async def _sender(self, ws) -> None:
        mime_type = f"audio/pcm;rate={self._sample_rate}"
        while True:
            pcm16 = await self._queue.get()
            await ws.send_json({
                "realtimeInput": {
                    "audio": {"mimeType": mime_type, "data": base64.b64encode(pcm16).decode("ascii")}
                }
            })
            self.bytes_sent += len(pcm16)

    async def _receiver(self, ws) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise NetworkError(f"WebSocket error: {ws.exception()}")
            if msg.type == aiohttp.WSMsgType.TEXT:
                raw = msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                raw = msg.data.decode("utf-8", errors="replace")
            else:
                continue

            self.msgs_recv += 1
            try:
                data = json.loads(raw)
            except ValueError:
                logger.debug(f"[LIVE] non-JSON message: {raw[:200]!r}")
                continue
            if isinstance(data, dict):
                self.dispatch(data)

    def dispatch(self, data: Dict[str, Any]) -> None:
        """Route one server message to the callbacks."""
        if "setupComplete" in data:
            self.opened = True
            logger.info("[LIVE] setup complete")
            self._emit(self._callbacks.on_open)
            return

        if "error" in data:
            raise ServiceError(f"Live session error: {json.dumps(data['error'])[:300]}")

        content = data.get("serverContent")
        if isinstance(content, dict):
            turn = content.get("modelTurn") or {}
            for part in turn.get("parts") or []:
                inline = part.get("inlineData") if isinstance(part, dict) else None
                if not inline or not inline.get("data"):
                    continue
                try:
                    pcm = base64.b64decode(inline["data"])
                except ValueError:
                    logger.debug("[LIVE] undecodable audio part skipped")
                    continue
                self._emit(self._callbacks.on_audio_chunk, pcm)

            if content.get("interrupted"):
                self._emit(self._callbacks.on_interrupted)

            transcription = content.get("outputTranscription")
            if isinstance(transcription, dict):
                text = (transcription.get("text") or "").strip()
                if text:
                    self._emit(self._callbacks.on_transcription_text, text)

        if "goAway" in data:
            logger.info(f"[LIVE] server going away: {data['goAway']}")
