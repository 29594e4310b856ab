"""Best-effort persistence for leads, sessions and shared documents.

Every record is appended to a JSONL archive and mirrored into Redis when a
URL is configured. Storage failures are logged and never raised to callers.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast
from uuid import uuid4

import redis
from redis import Redis
from redis.exceptions import RedisError

from .models import ConversationSession

logger = logging.getLogger(__name__)

SHARE_ID_LENGTH = 8
REDIS_TIMEOUT_SECONDS = 2.0


def _timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def new_record_id(prefix: str) -> str:
    created_at = datetime.now(timezone.utc)
    return "{}-{}-{}".format(
        prefix,
        created_at.strftime("%Y%m%d%H%M%S"),
        uuid4().hex[:6],
    )


def new_share_id() -> str:
    return uuid4().hex[:SHARE_ID_LENGTH]


class LeadRepository:
    """Persists leads and conversation snapshots to JSONL and Redis."""

    def __init__(self, archive_path: Path, redis_url: Optional[str]) -> None:
        self._archive_path = archive_path
        self._archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None

    @property
    def archive_path(self) -> Path:
        return self._archive_path

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                    socket_connect_timeout=REDIS_TIMEOUT_SECONDS,
                    socket_timeout=REDIS_TIMEOUT_SECONDS,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    def _archive(self, kind: str, record_id: str, record: Mapping[str, Any]) -> None:
        meta = {
            "_meta": {
                "kind": kind,
                "id": record_id,
                "ts": _timestamp(datetime.now(timezone.utc)),
            }
        }
        try:
            with self._archive_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(meta, ensure_ascii=False) + "\n")
                handle.write(json.dumps(dict(record), ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.warning("Archive write failed for %s %s: %s", kind, record_id, exc)

    def _put(self, kind: str, record_id: str, record: Mapping[str, Any]) -> None:
        client = self._get_redis()
        if not client:
            return
        key = f"{kind}:{record_id}"
        try:
            client.set(key, json.dumps(dict(record), ensure_ascii=False))
            client.zadd(
                f"{kind}s:index",
                {record_id: datetime.now(timezone.utc).timestamp()},
            )
        except RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Redis persistence failed for %s: %s", key, exc)

    def _get(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        client = self._get_redis()
        if client:
            key = f"{kind}:{record_id}"
            try:
                raw_value = client.get(key)
            except RedisError as exc:
                logger.warning("Redis read failed for %s: %s", key, exc)
            else:
                decoded = _decode_record(raw_value)
                if decoded is not None:
                    return decoded
        return self._scan_archive(kind, record_id)

    def _scan_archive(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the most recent archived record for ``kind``/``record_id``."""

        if not self._archive_path.exists():
            return None
        latest: Optional[Dict[str, Any]] = None
        expect_record = False
        try:
            with self._archive_path.open("r", encoding="utf-8") as handle:
                for raw_line in handle:
                    line = raw_line.strip()
                    if not line:
                        continue
                    try:
                        payload = json.loads(line)
                    except json.JSONDecodeError:
                        expect_record = False
                        continue
                    if not isinstance(payload, dict):
                        continue
                    entry = cast(Dict[str, Any], payload)
                    meta = entry.get("_meta")
                    if isinstance(meta, dict):
                        meta_dict = cast(Dict[str, Any], meta)
                        expect_record = (
                            meta_dict.get("kind") == kind
                            and meta_dict.get("id") == record_id
                        )
                        continue
                    if expect_record:
                        latest = entry
                        expect_record = False
        except OSError as exc:
            logger.warning("Archive read failed: %s", exc)
            return None
        return latest

    def _store(self, kind: str, record_id: str, record: Mapping[str, Any]) -> None:
        self._archive(kind, record_id, record)
        self._put(kind, record_id, record)

    # Sessions -----------------------------------------------------------

    def save_session(
        self,
        session: ConversationSession,
        *,
        session_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> str:
        """Store a conversation snapshot; returns the session id."""

        record_id = session_id or new_record_id("sess")
        record: Dict[str, Any] = {
            "id": record_id,
            "lead_id": lead_id,
            "updated_at": _timestamp(datetime.now(timezone.utc)),
            **session.to_dict(),
        }
        self._store("session", record_id, record)
        return record_id

    def load_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._get("session", session_id)

    # Leads --------------------------------------------------------------

    def find_lead_by_email(self, email: str) -> Optional[str]:
        client = self._get_redis()
        if not client:
            return None
        try:
            lead_id = client.hget("leads:email", email.lower())  # type: ignore[call-overload]
        except RedisError as exc:
            logger.warning("Redis lead lookup failed: %s", exc)
            return None
        return str(lead_id) if lead_id else None

    def upsert_lead(self, email: str) -> str:
        """Return the lead id for ``email``, creating the lead when new."""

        existing = self.find_lead_by_email(email)
        if existing:
            return existing
        lead_id = new_record_id("lead")
        record: Dict[str, Any] = {
            "id": lead_id,
            "email": email.lower(),
            "status": "email_captured",
            "created_at": _timestamp(datetime.now(timezone.utc)),
        }
        self._store("lead", lead_id, record)
        client = self._get_redis()
        if client:
            try:
                client.hset("leads:email", email.lower(), lead_id)  # type: ignore[call-overload]
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis lead index failed: %s", exc)
        return lead_id

    def update_lead(self, lead_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        record = self._get("lead", lead_id) or {"id": lead_id}
        record.update({key: value for key, value in fields.items() if value is not None})
        record["updated_at"] = _timestamp(datetime.now(timezone.utc))
        self._store("lead", lead_id, record)
        return record

    def load_lead(self, lead_id: str) -> Optional[Dict[str, Any]]:
        return self._get("lead", lead_id)

    # Requests -----------------------------------------------------------

    def save_consultation(self, fields: Mapping[str, Any]) -> str:
        request_id = new_record_id("consult")
        record: Dict[str, Any] = {
            "id": request_id,
            "status": "pending",
            "created_at": _timestamp(datetime.now(timezone.utc)),
            **dict(fields),
        }
        self._store("consultation", request_id, record)
        return request_id

    def save_cta_lead(self, fields: Mapping[str, Any]) -> str:
        record_id = new_record_id("cta")
        record: Dict[str, Any] = {
            "id": record_id,
            "created_at": _timestamp(datetime.now(timezone.utc)),
            **dict(fields),
        }
        self._store("cta_lead", record_id, record)
        return record_id

    def save_rfp_delivery(
        self,
        email: str,
        document: str,
        *,
        project_name: Optional[str] = None,
        method: str = "stored",
    ) -> str:
        delivery_id = new_record_id("rfp")
        record: Dict[str, Any] = {
            "id": delivery_id,
            "email": email.lower(),
            "project_name": project_name,
            "document": document,
            "method": method,
            "created_at": _timestamp(datetime.now(timezone.utc)),
        }
        self._store("rfp_delivery", delivery_id, record)
        return delivery_id

    # Shared documents ---------------------------------------------------

    def save_shared_document(
        self,
        document: str,
        *,
        project_name: str = "",
        answers: Optional[Mapping[str, Any]] = None,
    ) -> str:
        share_id = new_share_id()
        record: Dict[str, Any] = {
            "id": share_id,
            "document": document,
            "project_name": project_name,
            "answers": dict(answers) if answers else None,
            "created_at": _timestamp(datetime.now(timezone.utc)),
        }
        self._store("share", share_id, record)
        return share_id

    def load_shared_document(self, share_id: str) -> Optional[Dict[str, Any]]:
        return self._get("share", share_id)


def _decode_record(raw_value: object) -> Optional[Dict[str, Any]]:
    if not raw_value:
        return None
    if isinstance(raw_value, bytes):
        decoded = raw_value.decode("utf-8")
    else:
        decoded = str(raw_value)
    try:
        payload = json.loads(decoded)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)
