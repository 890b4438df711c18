from typing import List

from redis import Redis

ADMIN_CHATS_KEY = "admins:chat_ids"


class AdminDirectory:
    """
    Telegram cannot message a user by username, so admins become reachable
    for alerts only after they talk to the bot once (any admin command).
    """

    def __init__(self, r: Redis):
        self.r = r

    def remember(self, chat_id: str) -> None:
        self.r.sadd(ADMIN_CHATS_KEY, str(chat_id))

    def chat_ids(self) -> List[str]:
        return sorted(str(x) for x in (self.r.smembers(ADMIN_CHATS_KEY) or []))
