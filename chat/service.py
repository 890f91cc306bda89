# chat/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from authentication.context import AuthContext
from authentication.profiles import UserProfile

from .llm import ResponseGenerator, served_by
from .prompts import welcome_text
from .sessions import (
    ROLE_MODEL,
    ROLE_USER,
    ChatMessage,
    ChatSession,
    SessionReconciler,
    derive_title,
)

log = logging.getLogger(__name__)

WELCOME_MESSAGE_ID = "welcome"
PERSIST_ALERT = "Sohbet kaydedilemedi; bağlantı düzelince yeniden denenecek. ({error})"


# =========================
# Ports (Interfaces)
# =========================

class ReplyGenerator(Protocol):
    def respond(self, prompt: str, history=(), profile=None, *, informational: bool = False,
                api_key_override: Optional[str] = None) -> str: ...


# =========================
# Turn state machine
# =========================

class TurnState(str, Enum):
    IDLE = "idle"
    USER_MESSAGE_APPENDED = "user_message_appended"
    PERSISTING = "persisting"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    MODEL_MESSAGE_APPENDED = "model_message_appended"
    PERSISTING_FINAL = "persisting_final"


@dataclass
class TurnResult:
    session: ChatSession
    reply: str
    states: List[TurnState] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)

    @property
    def model(self) -> Optional[str]:
        return served_by(self.reply)


class EmptyPrompt(ValueError):
    ...


# =========================
# Application service
# =========================

@dataclass
class ChatTurnService:
    reconciler: SessionReconciler
    generator: ReplyGenerator

    def start_session(self, auth: AuthContext, profile: Optional[UserProfile] = None) -> ChatSession:
        """New draft; greets the user when a profile is known and saves it."""
        session = ChatSession.new(auth.user_id)
        if profile is None:
            return session
        welcome = ChatMessage.create(ROLE_MODEL, welcome_text(profile), message_id=WELCOME_MESSAGE_ID)
        return self.reconciler.save(session.with_message(welcome))

    def _persist(self, session: ChatSession, alerts: List[str]) -> ChatSession:
        saved = self.reconciler.save(session)
        if saved.dirty:
            alerts.append(PERSIST_ALERT.format(error=saved.last_error))
        return saved

    def send(
        self,
        auth: AuthContext,
        session: ChatSession,
        text: str,
        profile: Optional[UserProfile] = None,
    ) -> TurnResult:
        text = (text or "").strip()
        if not text:
            raise EmptyPrompt("empty message")

        states = [TurnState.IDLE]
        alerts: List[str] = []
        history = session.messages

        user_msg = ChatMessage.create(ROLE_USER, text)
        title = derive_title(session.title, text, len(history))
        session = session.with_title(title).with_message(user_msg)
        states.append(TurnState.USER_MESSAGE_APPENDED)

        # the durable id must be in place before the final save
        states.append(TurnState.PERSISTING)
        session = self._persist(session, alerts)

        states.append(TurnState.AWAITING_MODEL_RESPONSE)
        reply = self.generator.respond(
            text, history, profile, api_key_override=auth.api_key_override,
        )

        session = session.with_message(ChatMessage.create(ROLE_MODEL, reply))
        states.append(TurnState.MODEL_MESSAGE_APPENDED)

        states.append(TurnState.PERSISTING_FINAL)
        session = self._persist(session, alerts)
        states.append(TurnState.IDLE)

        log.info(
            "chat_turn user=%s session=%s status=%s model=%s dirty=%s",
            auth.username, session.id, session.status, served_by(reply), session.dirty,
        )
        return TurnResult(session=session, reply=reply, states=states, alerts=alerts)


def export_session(session: ChatSession, profile: Optional[UserProfile] = None) -> Dict[str, Any]:
    """Transcript backup as downloaded from the chat screen."""
    return {
        "title": session.title,
        "user": profile.to_dict() if profile else None,
        "date": datetime.now(timezone.utc).date().isoformat(),
        "messages": [m.to_record() for m in session.messages],
    }


# =========================
# Public API
# =========================

def default_service() -> ChatTurnService:
    return ChatTurnService(reconciler=SessionReconciler(), generator=ResponseGenerator())
