"""Chat-history endpoints: individual conversation turns owned by the caller."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from applifix.api._helpers import paginate, success
from applifix.auth import get_current_user
from applifix.database import get_db
from applifix.errors import Forbidden, NotFound, ValidationFailed
from applifix.models.conversation import Conversation, ConversationTurn, Speaker
from applifix.models.user import UserProfile
from applifix.schemas.chat import ChatHistoryIn, TurnOut

router = APIRouter()

TURNS_PER_PAGE = 20


def _owned_turn(turn_id: int, profile: UserProfile, db: Session) -> ConversationTurn:
    turn = db.get(ConversationTurn, turn_id)
    if turn is None:
        raise NotFound("History entry not found.")
    if turn.author_id != profile.id:
        raise Forbidden()
    return turn


@router.get("")
def list_history(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    query = (
        db.query(ConversationTurn)
        .filter(ConversationTurn.author_id == profile.id)
        .order_by(ConversationTurn.id.desc())
    )
    return success(paginate(query, page, TURNS_PER_PAGE, TurnOut.model_validate))


@router.post("", status_code=201)
def create_history_entry(
    payload: ChatHistoryIn,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    conversation = db.get(Conversation, payload.chat_id)
    if conversation is None:
        raise ValidationFailed(errors={"chat_id": ["The selected chat id is invalid."]})
    if conversation.owner_id != profile.id:
        raise Forbidden()

    turn = ConversationTurn(
        conversation_id=conversation.id,
        author_id=profile.id,
        body=payload.message,
        speaker=Speaker(payload.role),
    )
    db.add(turn)
    db.commit()
    db.refresh(turn)
    return success(TurnOut.model_validate(turn), message="Chat history entry created")


@router.get("/{turn_id}")
def show_history_entry(
    turn_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    return success(TurnOut.model_validate(_owned_turn(turn_id, profile, db)))


@router.delete("/{turn_id}")
def delete_history_entry(
    turn_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    turn = _owned_turn(turn_id, profile, db)
    db.delete(turn)
    db.commit()
    return success(None, message="Chat history entry deleted")
