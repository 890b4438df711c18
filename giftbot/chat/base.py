from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

# Incoming event kinds
COMMAND = "command"
CALLBACK = "callback"
TEXT = "text"


@dataclass
class Button:
    label: str
    data: str


# Rows of buttons
Choices = List[List[Button]]


@dataclass
class Reply:
    text: str
    choices: Choices = field(default_factory=list)


@dataclass
class ChatEvent:
    eventType: str
    userId: str
    payload: str = ""
    username: Optional[str] = None
    displayName: str = ""
    callbackId: Optional[str] = None


class ChatClient(ABC):
    """Outbound side of the chat transport."""

    @abstractmethod
    def send_message(self, user_id: str, text: str, choices: Optional[Choices] = None) -> None: ...

    @abstractmethod
    def answer_callback(self, callback_id: str, text: str = "") -> None: ...

    def present_choices(self, user_id: str, prompt: str, choices: Choices) -> None:
        self.send_message(user_id, prompt, choices)

    def send_reply(self, user_id: str, reply: Reply) -> None:
        if reply.choices:
            self.present_choices(user_id, reply.text, reply.choices)
        else:
            self.send_message(user_id, reply.text)
