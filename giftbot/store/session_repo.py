import json
import time
from dataclasses import asdict, fields as dc_fields
from typing import Optional

from redis import Redis

from giftbot.settings import settings
from giftbot.store.models import ChatSession
from giftbot.utils.lock import key_lock

PREFIX = "chat_session:"


def _key(user_id: str) -> str:
    return f"{PREFIX}{user_id}"


def _filter_session_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so ChatSession(**kwargs) never explodes on records
    written by an older build.
    """
    allowed = {f.name for f in dc_fields(ChatSession)}
    return {k: v for k, v in data.items() if k in allowed}


class SessionRepo:
    """
    Per-user conversation sessions. Each one is a JSON blob with a sliding
    TTL of SESSION_TTL_SEC, refreshed on every save.
    """

    def __init__(self, r: Redis, ttl_sec: int = None):
        self.r = r
        self.ttl_sec = int(settings.SESSION_TTL_SEC if ttl_sec is None else ttl_sec)

    def lock(self, user_id: str):
        return key_lock(self.r, f"user:{user_id}")

    def load(self, user_id: str) -> Optional[ChatSession]:
        raw = self.r.get(_key(user_id))
        if not raw:
            return None
        data = _filter_session_kwargs(json.loads(raw))
        return ChatSession(**data)

    def save(self, session: ChatSession) -> None:
        session.updatedAtEpoch = int(time.time())
        raw = json.dumps(asdict(session))
        if self.ttl_sec > 0:
            self.r.set(_key(session.userId), raw, ex=self.ttl_sec)
        else:
            self.r.set(_key(session.userId), raw)

    def delete(self, user_id: str) -> bool:
        return bool(self.r.delete(_key(user_id)))
