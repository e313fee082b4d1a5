"""Chat endpoints: send messages, browse, search and delete conversations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from applifix.api._helpers import enforce_guest_limit, get_completion_client, paginate, success
from applifix.auth import get_current_user
from applifix.database import get_db
from applifix.models.conversation import Conversation, ConversationTurn
from applifix.models.user import UserProfile
from applifix.schemas.chat import (
    ChatMessageIn,
    ConversationOut,
    ExchangeOut,
    PreviewTurnOut,
    TopicChatIn,
    TurnOut,
)
from applifix.services.completion import CompletionClient
from applifix.services.orchestrator import (
    ConversationOrchestrator,
    ExchangeResult,
    load_owned_conversation,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CHATS_PER_PAGE = 10


def _exchange_out(result: ExchangeResult) -> ExchangeOut:
    turns = None
    if result.turns is not None:
        turns = [PreviewTurnOut(**t) for t in result.turns]
    return ExchangeOut(
        ai_message=result.assistant_message,
        chat_id=result.conversation_id,
        turns=turns,
    )


# ── Guest-accessible, rate-limited ────────────────────────────────────────────


@router.post("/chat")
def send_message(
    payload: ChatMessageIn,
    actor: UserProfile | None = Depends(enforce_guest_limit),
    db: Session = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
):
    """Send a message to the repair assistant; persisted for signed-in users."""
    orchestrator = ConversationOrchestrator(db, completion)
    result = orchestrator.handle_message(
        actor,
        payload.message,
        conversation_id=payload.chat_id,
        origin_topic_id=payload.topic_id,
    )
    return success(_exchange_out(result))


@router.post("/new/chat/topic")
def start_topic_chat(
    payload: TopicChatIn,
    actor: UserProfile | None = Depends(enforce_guest_limit),
    db: Session = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
):
    """Start a conversation seeded with a topic's description."""
    orchestrator = ConversationOrchestrator(db, completion)
    result = orchestrator.handle_message(actor, None, origin_topic_id=payload.topic_id)
    return success(_exchange_out(result))


# ── Authenticated ─────────────────────────────────────────────────────────────


@router.get("/chats")
def list_chats(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    query = (
        db.query(Conversation)
        .options(selectinload(Conversation.turns))
        .filter(Conversation.owner_id == profile.id)
        .order_by(Conversation.id.desc())
    )
    return success(paginate(query, page, CHATS_PER_PAGE, ConversationOut.model_validate))


@router.get("/chats/search")
def search_chats(
    query: str = Query("", max_length=255),
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    """Conversations whose title or any turn contains *query*, newest first."""
    pattern = f"%{query}%"
    conversations = (
        db.query(Conversation)
        .options(selectinload(Conversation.turns))
        .filter(
            Conversation.owner_id == profile.id,
            or_(
                Conversation.title.like(pattern),
                Conversation.turns.any(ConversationTurn.body.like(pattern)),
            ),
        )
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
        .all()
    )
    return success([ConversationOut.model_validate(c) for c in conversations])


@router.get("/chat/{chat_id}")
def show_chat(
    chat_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    conversation = load_owned_conversation(db, chat_id, profile)
    return success([TurnOut.model_validate(t) for t in conversation.turns])


@router.post("/chat/delete/{chat_id}")
def delete_chat(
    chat_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    conversation = load_owned_conversation(db, chat_id, profile)
    db.delete(conversation)
    db.commit()
    logger.info("User %d deleted conversation %d", profile.id, chat_id)
    return success("Chat deleted successfully.")
