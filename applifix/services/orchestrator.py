"""ConversationOrchestrator: turns one inbound message into a completion call and a persisted exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from applifix.errors import Forbidden, NotFound, ValidationFailed
from applifix.models.conversation import Conversation, ConversationTurn, Speaker
from applifix.models.topic import Topic
from applifix.models.user import UserProfile
from applifix.services.completion import CompletionClient
from applifix.services.rate_limiter import utcnow

logger = logging.getLogger(__name__)

NO_RESPONSE_PLACEHOLDER = "No response received."


@dataclass
class ExchangeResult:
    assistant_message: str
    conversation_id: int | None
    # Only set for the guest topic-preview flow, where nothing is persisted.
    turns: list[dict[str, Any]] | None = field(default=None)


def load_owned_conversation(db: Session, conversation_id: int, owner: UserProfile) -> Conversation:
    """Fetch a conversation, raising NotFound if missing and Forbidden if *owner* does not own it."""
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFound("Chat not found.")
    if conversation.owner_id != owner.id:
        raise Forbidden()
    return conversation


class ConversationOrchestrator:
    """
    Decides, per message, whether a conversation is created or extended.

    Resolution:
    - no conversation id, no topic  -> new conversation titled with the message
    - no conversation id, topic     -> new conversation titled with the topic;
                                       body defaults to the topic description
    - existing conversation id      -> append, after an ownership check

    The provider only ever sees the system instruction and the current
    message. Nothing is written unless the provider call succeeds, and the
    conversation plus both turns are committed together.
    """

    def __init__(self, db: Session, completion: CompletionClient):
        self.db = db
        self.completion = completion

    def handle_message(
        self,
        actor: UserProfile | None,
        message: str | None,
        conversation_id: int | None = None,
        origin_topic_id: int | None = None,
    ) -> ExchangeResult:
        topic: Topic | None = None
        if conversation_id is None and origin_topic_id is not None:
            topic = self.db.get(Topic, origin_topic_id)
            if topic is None:
                raise NotFound("Topic not found.")
            # A blank message is not an override of the topic description
            if not (message and message.strip()):
                message = topic.description

        if not message or not message.strip():
            raise ValidationFailed(errors={"message": ["The message field is required."]})

        conversation: Conversation | None = None
        if actor is not None and conversation_id is not None:
            conversation = load_owned_conversation(self.db, conversation_id, actor)

        logger.info(
            "Calling completion provider (actor=%s, conversation=%s, topic=%s)",
            actor.id if actor else "guest", conversation_id, origin_topic_id,
        )
        reply = self.completion.complete(message)
        assistant_text = reply if reply is not None else NO_RESPONSE_PLACEHOLDER

        if actor is None:
            turns = None
            if origin_topic_id is not None:
                turns = _preview_turns(message, assistant_text, utcnow())
            return ExchangeResult(assistant_message=assistant_text, conversation_id=None, turns=turns)

        conversation = self._persist_exchange(actor, conversation, topic, message, assistant_text)
        return ExchangeResult(assistant_message=assistant_text, conversation_id=conversation.id)

    def _persist_exchange(
        self,
        actor: UserProfile,
        conversation: Conversation | None,
        topic: Topic | None,
        message: str,
        assistant_text: str,
    ) -> Conversation:
        try:
            if conversation is None:
                conversation = Conversation(
                    title=topic.title if topic is not None else message,
                    owner_id=actor.id,
                    origin_topic_id=topic.id if topic is not None else None,
                )
                self.db.add(conversation)
                self.db.flush()
                logger.info("Created conversation %d for user %d", conversation.id, actor.id)

            self.db.add(ConversationTurn(
                conversation_id=conversation.id,
                author_id=actor.id,
                body=message,
                speaker=Speaker.user,
            ))
            self.db.add(ConversationTurn(
                conversation_id=conversation.id,
                author_id=actor.id,
                body=assistant_text,
                speaker=Speaker.assistant,
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to persist exchange for user %d", actor.id)
            raise
        return conversation


def _preview_turns(message: str, reply: str, stamp: datetime) -> list[dict[str, Any]]:
    return [
        {"role": Speaker.user.value, "message": message, "created_at": stamp},
        {"role": Speaker.assistant.value, "message": reply, "created_at": stamp},
    ]
