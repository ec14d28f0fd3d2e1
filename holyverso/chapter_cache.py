import json
import time
from typing import Callable, Dict, Optional

import redis

from holyverso.config import CHAPTER_CACHE_REDIS, CHAPTER_CACHE_TTL_SEC, REDIS_URL


def build_cache_key(version_code: str, book: str, chapter: int) -> str:
    return f"{version_code.lower()}|{book.lower()}|{chapter}"


class ChapterCache:
    """Time-bound cache of full chapter payloads.

    Entries live in process memory unless a Redis URL is given and answers a
    ping. Content is immutable per key, so concurrent writers simply
    overwrite each other.
    """

    def __init__(
        self,
        ttl_sec: int = CHAPTER_CACHE_TTL_SEC,
        redis_url: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._mem: Dict[str, dict] = {}
        self._redis_url = redis_url
        self._redis_client = None
        self._redis_available = bool(redis_url)

    def _get_redis(self):
        if not self._redis_available:
            return None
        if self._redis_client is None:
            client = redis.Redis.from_url(self._redis_url, decode_responses=True)
            try:
                client.ping()
            except redis.RedisError:
                self._redis_available = False
                return None
            self._redis_client = client
        return self._redis_client

    def _redis_key(self, key: str) -> str:
        return f"chapter:{key}"

    def _mem_get(self, key: str) -> Optional[dict]:
        cached = self._mem.get(key)
        if not cached:
            return None
        if cached["expires_at"] <= self._clock():
            self._mem.pop(key, None)
            return None
        return cached["payload"]

    def _prune(self) -> None:
        now = self._clock()
        for key in [k for k, v in self._mem.items() if v["expires_at"] <= now]:
            del self._mem[key]

    def get(self, key: str) -> Optional[dict]:
        client = self._get_redis()
        if client is not None:
            try:
                raw = client.get(self._redis_key(key))
            except redis.RedisError:
                raw = None
            if raw:
                return json.loads(raw)
        # entries written while Redis was failing live in memory
        return self._mem_get(key)

    def set(self, key: str, payload: dict) -> None:
        client = self._get_redis()
        if client is not None:
            try:
                client.set(self._redis_key(key), json.dumps(payload), ex=self.ttl_sec)
                return
            except redis.RedisError:
                pass
        self._prune()
        self._mem[key] = {"payload": payload, "expires_at": self._clock() + self.ttl_sec}


def build_chapter_cache() -> ChapterCache:
    return ChapterCache(redis_url=REDIS_URL if CHAPTER_CACHE_REDIS else None)
