"""FastAPI router aggregation."""

from fastapi import APIRouter

from applifix.api.chat import router as chat_router
from applifix.api.chat_history import router as chat_history_router

api_router = APIRouter(prefix="/api")

api_router.include_router(chat_router, tags=["chat"])
api_router.include_router(chat_history_router, prefix="/chat-history", tags=["chat-history"])
