"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkwell.api import chat, ops, posts, users
from inkwell.api.errors import install_error_handlers
from inkwell.domain.chat.handler import redis_send_limiter
from inkwell.domain.chat.presence import PresenceRegistry
from inkwell.domain.chat.sockets import ChatNamespace, set_namespace as set_chat_namespace
from inkwell.infra import postgres
from inkwell.obs import init as obs_init
from inkwell.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	if not settings.uses_memory_store():
		await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Inkwell API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# One presence registry per process, shared by every chat session.
presence = PresenceRegistry()
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
chat_namespace = ChatNamespace(
	presence=presence,
	limiter=redis_send_limiter(
		limit=settings.chat_send_rate_limit,
		window_seconds=settings.chat_send_rate_window_seconds,
	),
)
sio.register_namespace(chat_namespace)
set_chat_namespace(chat_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(posts.router, tags=["posts"])
app.include_router(users.router, tags=["users"])
app.include_router(chat.router, tags=["chat"])
app.include_router(ops.router, tags=["ops"])
