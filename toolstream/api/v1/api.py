# The module is to define the API router for the application.
# Date: 2025-06-14
# Version: 0.2.0

from fastapi import APIRouter

from toolstream.api.v1.endpoints import chat, tools

api_router = APIRouter()

# Include the chat router with a '/chat' prefix
api_router.include_router(chat.router, prefix="/chat", tags=["Conversation"])

# Include the tools router with a '/tools' prefix
api_router.include_router(tools.router, prefix="/tools", tags=["Tools"])
