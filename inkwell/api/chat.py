"""FastAPI endpoints for direct chats."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from inkwell.domain.chat.schemas import (
	ChatHandle,
	ConversationResponse,
	MarkReadResponse,
	MessageResponse,
	SendMessageRequest,
	UnreadCountResponse,
)
from inkwell.domain.chat.service import MESSAGES_PAGE_SIZE, ChatService
from inkwell.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_service() -> ChatService:
	return ChatService()


@router.get("/conversations", response_model=List[ConversationResponse])
async def conversations(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> List[ConversationResponse]:
	return await service.list_conversations(auth_user)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> UnreadCountResponse:
	return await service.unread_count(auth_user)


@router.get("/with/{user_id}", response_model=ChatHandle)
async def chat_with(
	user_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> ChatHandle:
	return await service.get_or_create_chat(auth_user, user_id)


@router.get("/{chat_id}/messages", response_model=List[MessageResponse])
async def list_messages(
	chat_id: int,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=MESSAGES_PAGE_SIZE, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> List[MessageResponse]:
	return await service.list_messages(auth_user, chat_id, page=page, limit=limit)


@router.post("/{chat_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
	chat_id: int,
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> MessageResponse:
	return await service.send_message(auth_user, chat_id, payload)


@router.put("/{chat_id}/read", response_model=MarkReadResponse)
async def mark_read(
	chat_id: int,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> MarkReadResponse:
	return await service.mark_read(auth_user, chat_id)
