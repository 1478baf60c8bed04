"""Persistence utilities for business profiles."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional
from uuid import uuid4

import redis
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

PROFILE_KEY_PREFIX = "business_profile:"
RECORD_KEY_PREFIX = "business_profile_record:"
RECORD_INDEX_KEY = "business_profiles:index"

# redis-py wraps socket failures, other clients may raise them directly.
_REDIS_ERRORS = (RedisError, OSError)


class ProfileStoreError(RuntimeError):
    """Raised when a profile cannot be written to or read from storage."""


class ProfileRepository:
    """Archives profile records to JSONL and keeps the latest copy in Redis.

    ``create_record`` appends an audit record to the archive (mirrored into
    Redis on a best-effort basis). ``put``/``get`` are the key/value surface
    keyed by user id; without Redis, or when Redis is unreachable, the
    archive is scanned for the latest record of that user instead.
    """

    def __init__(
        self,
        archive_path: Path,
        redis_url: Optional[str],
        *,
        client: Optional[Redis] = None,
    ) -> None:
        self._archive_path = archive_path
        self._archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = client

    def _get_redis(self) -> Optional[Redis]:
        if self._redis is not None:
            return self._redis
        if not self._redis_url:
            return None
        try:
            self._redis = redis.from_url(  # type: ignore[call-overload]
                self._redis_url,
                decode_responses=True,
            )
        except RedisError as exc:  # pragma: no cover - network guarded
            logger.warning("Redis connection failed: %s", exc)
            self._redis = None
        return self._redis

    def create_record(self, user_id: str, profile: Mapping[str, Any]) -> str:
        """Append a new profile record and return its identifier."""

        created_at = datetime.now(timezone.utc)
        record_id = "prof-{}-{}".format(
            created_at.strftime("%Y%m%d%H%M%S"),
            uuid4().hex[:6],
        )
        timestamp = _timestamp(created_at)
        record: Dict[str, Any] = {
            "id": record_id,
            "userId": user_id,
            **dict(profile),
            "verificationStatus": "pending",
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }
        try:
            with self._archive_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise ProfileStoreError(
                f"Unable to append profile record to {self._archive_path}"
            ) from exc

        client = self._get_redis()
        if client:
            key = f"{RECORD_KEY_PREFIX}{record_id}"
            try:
                client.set(key, json.dumps(record, ensure_ascii=False))
                client.zadd(
                    RECORD_INDEX_KEY,
                    {record_id: created_at.timestamp()},
                )
            except _REDIS_ERRORS as exc:
                logger.warning("Redis persistence failed for %s: %s", key, exc)
        return record_id

    def put(self, user_id: str, profile: Mapping[str, Any]) -> None:
        """Cache ``profile`` as the current profile of ``user_id``.

        Best effort: the archive written by ``create_record`` stays the
        source of truth, so a Redis failure is only logged.
        """

        client = self._get_redis()
        if not client:
            return
        key = f"{PROFILE_KEY_PREFIX}{user_id}"
        try:
            client.set(key, json.dumps(dict(profile), ensure_ascii=False))
        except _REDIS_ERRORS as exc:
            logger.warning("Redis persistence failed for %s: %s", key, exc)

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the current profile of ``user_id`` if one was stored."""

        client = self._get_redis()
        if client:
            key = f"{PROFILE_KEY_PREFIX}{user_id}"
            try:
                raw_value = client.get(key)
            except _REDIS_ERRORS as exc:
                logger.warning(
                    "Redis lookup failed for %s, reading archive: %s", key, exc
                )
                raw_value = None
            decoded = _decode_blob(raw_value)
            if decoded is not None:
                return decoded

        latest: Optional[Dict[str, Any]] = None
        for record in self.iter_records():
            if record.get("userId") == user_id:
                latest = record
        return latest

    def iter_records(self) -> Iterator[Dict[str, Any]]:
        """Yield archived profile records in the order they were written."""

        if not self._archive_path.exists():
            return
        try:
            lines: List[str] = self._archive_path.read_text(
                encoding="utf-8"
            ).splitlines()
        except OSError as exc:
            raise ProfileStoreError(
                f"Unable to read profile archive {self._archive_path}"
            ) from exc
        for line in lines:
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed profile archive line")
                continue
            if isinstance(payload, dict):
                yield payload

    @property
    def archive_path(self) -> Path:
        """Return the filesystem path for the JSONL archive."""

        return self._archive_path


def _timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _decode_blob(raw_value: Any) -> Optional[Dict[str, Any]]:
    if not raw_value:
        return None
    if isinstance(raw_value, bytes):
        raw_value = raw_value.decode("utf-8")
    try:
        payload = json.loads(str(raw_value))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None
