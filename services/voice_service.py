from __future__ import annotations
import base64
import hashlib
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

import requests

from config.assistant_config import ConfigProvider
from utils.logger import setup_logger

logger = setup_logger(__name__)


DEEPGRAM_SPEAK_URL = "https://api.deepgram.com/v1/speak"
DEEPGRAM_TIMEOUT_SECONDS = 30
VOICE_CACHE_MAX_ENTRIES = 10
VOICE_MAX_SESSIONS = 1000


class VoiceCache:
    """Per-session cache of base64 audio.

    Holds at most ``max_entries`` items and evicts the oldest-inserted entry
    first; reads drop entries older than ``lifetime_seconds``.
    """

    def __init__(
        self,
        lifetime_seconds: float,
        max_entries: int = VOICE_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time
    ):
        self.lifetime_seconds = lifetime_seconds
        self.max_entries = max_entries
        self.clock = clock
        self.last_used = clock()
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def is_idle(self, now: float) -> bool:
        return now - self.last_used >= self.lifetime_seconds

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self.last_used = self.clock()
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.last_used - entry["timestamp"] >= self.lifetime_seconds:
                del self._entries[key]
                return None
            return entry["data"]

    def put(self, key: str, data: str) -> None:
        with self._lock:
            self.last_used = self.clock()
            if key not in self._entries:
                while len(self._entries) >= self.max_entries:
                    self._entries.popitem(last=False)
            self._entries[key] = {"data": data, "timestamp": self.last_used}


class DeepgramClient:
    def __init__(self, api_key: str, timeout: float = DEEPGRAM_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.timeout = timeout

    def speak(self, text: str, model: str) -> Optional[bytes]:
        try:
            response = requests.post(
                DEEPGRAM_SPEAK_URL,
                params={"model": model},
                data=text.encode("utf-8"),
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Content-Type": "text/plain",
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Deepgram API request error: {e}", extra={"model": model})
            return None

        if response.status_code != 200:
            logger.error(
                f"Deepgram API error: HTTP {response.status_code}",
                extra={"model": model, "response": response.text[:500]}
            )
            return None

        return response.content


class VoiceService:
    def __init__(
        self,
        config: ConfigProvider,
        client_factory: Callable[[str], DeepgramClient] = DeepgramClient,
        clock: Callable[[], float] = time.time,
        max_sessions: int = VOICE_MAX_SESSIONS
    ):
        self.config = config
        self.client_factory = client_factory
        self.clock = clock
        self.max_sessions = max_sessions
        # least recently used session first
        self._session_caches: "OrderedDict[str, VoiceCache]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def session_count(self) -> int:
        return len(self._session_caches)

    def cache_for_session(self, session_id: Optional[str]) -> VoiceCache:
        key = session_id or ""
        with self._lock:
            self._evict_idle_sessions()
            cache = self._session_caches.get(key)
            if cache is None:
                while len(self._session_caches) >= self.max_sessions:
                    self._session_caches.popitem(last=False)
                cache = VoiceCache(
                    lifetime_seconds=self.config.get_voice_cache_lifetime() * 60,
                    clock=self.clock
                )
                self._session_caches[key] = cache
            else:
                self._session_caches.move_to_end(key)
            return cache

    def _evict_idle_sessions(self) -> None:
        now = self.clock()
        while self._session_caches:
            oldest_key, oldest = next(iter(self._session_caches.items()))
            if not oldest.is_idle(now):
                break
            del self._session_caches[oldest_key]

    def end_session(self, session_id: Optional[str]) -> None:
        with self._lock:
            self._session_caches.pop(session_id or "", None)

    def generate_cache_key(self, text: str, product_id: Optional[int], session_id: Optional[str]) -> str:
        model = self.config.get_voice_model()
        raw = f"{text}_{model}_{product_id or 0}_{session_id or ''}"
        return "voice_" + hashlib.md5(raw.encode("utf-8")).hexdigest()

    def generate_voice(
        self,
        text: str,
        product_id: Optional[int] = None,
        session_id: Optional[str] = None
    ) -> Dict[str, Any]:
        if not self.config.is_voice_enabled():
            return {"success": False, "error": "Voice feature is disabled"}

        api_key = self.config.get_deepgram_api_key()
        if not api_key:
            return {"success": False, "error": "Deepgram API key not configured"}

        cache = self.cache_for_session(session_id)
        cache_key = self.generate_cache_key(text, product_id, session_id)

        cached = cache.get(cache_key)
        if cached:
            return {"success": True, "audio_data": cached, "from_cache": True, "text": text}

        model = self.config.get_voice_model()
        audio = self.client_factory(api_key).speak(text, model)
        if not audio:
            return {"success": False, "error": "Failed to generate voice audio"}

        encoded = base64.b64encode(audio).decode("ascii")
        cache.put(cache_key, encoded)

        logger.info(
            "Voice generated",
            extra={"product_id": product_id, "model": model, "bytes": len(audio)}
        )

        return {
            "success": True,
            "audio_data": encoded,
            "from_cache": False,
            "text": text,
            "model": model,
        }
