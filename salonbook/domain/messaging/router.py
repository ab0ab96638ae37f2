"""Messaging router - WhatsApp connection, agent settings and the inbound webhook"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_whatsapp import ChatMessage, WhatsAppAgentConfig
from ...rate_limiter import rate_limit_webhook
from ...webhook_security import verify_whatsapp_webhook
from .schemas import (
    AgentConfigResponse,
    AgentConfigUpdate,
    ChatMessageResponse,
    ConnectQrRequest,
    CredentialsRequest,
    CredentialsResponse,
)
from .service import MessagingService
from .session_store import SessionStore, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])
webhook_router = APIRouter(prefix="/webhook", tags=["Webhooks"])


def get_messaging_service(
    db: Session = Depends(get_db), store: SessionStore = Depends(get_session_store)
) -> MessagingService:
    """Dependency injection for MessagingService"""
    return MessagingService(db, store)


def agent_config_response(config: WhatsAppAgentConfig) -> AgentConfigResponse:
    return AgentConfigResponse(
        agentEnabled=bool(config.agent_enabled),
        isConnected=bool(config.is_connected),
        phoneNumberId=config.phone_number_id,
        welcomeMessage=config.welcome_message,
        defaultResponse=config.default_response,
        llmPrompt=config.llm_prompt,
    )


def chat_message_response(message: ChatMessage) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        customerPhone=message.customer_phone,
        message=message.message,
        isFromCustomer=message.is_from_customer,
        created_at=message.created_at,
    )


@router.post("/start-session")
async def start_session(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Start the tenant's WhatsApp session; poll /qr afterwards"""
    return await service.start_session(current_user)


@router.get("/qr")
async def get_qr(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.get_qr(current_user)


@router.post("/qr")
async def create_connect_qr(
    data: ConnectQrRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.create_connect_qr(current_user, data.phoneNumber)


@router.post("/test")
async def test_connection(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send a test message with the stored UltraMsg credentials"""
    return await service.test_connection(current_user)


@router.post("/disconnect")
async def disconnect(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.disconnect(current_user)


@router.get("/credentials", response_model=CredentialsResponse)
async def get_credentials(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.get_credentials(current_user)


@router.put("/credentials", response_model=CredentialsResponse)
async def save_credentials(
    data: CredentialsRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Store the UltraMsg token encrypted; only a masked copy is ever returned"""
    return service.save_credentials(current_user, data.instanceId, data.apiKey)


@router.get("/agent-config", response_model=AgentConfigResponse)
async def get_agent_config(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return agent_config_response(service.get_agent_config(current_user))


@router.put("/agent-config", response_model=AgentConfigResponse)
async def update_agent_config(
    data: AgentConfigUpdate,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return agent_config_response(service.update_agent_config(current_user, data))


@router.get("/messages", response_model=list[ChatMessageResponse])
async def get_messages(
    phone: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return [chat_message_response(m) for m in service.get_messages(current_user, phone)]


@webhook_router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    _: None = Depends(verify_whatsapp_webhook),
    __: None = Depends(rate_limit_webhook),
    service: MessagingService = Depends(get_messaging_service),
):
    """
    Inbound WhatsApp events.

    Always answers 200 once the body parses so the provider does not
    redeliver; failures on individual messages are logged.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("⚠️ WhatsApp webhook with invalid JSON body")
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    return await service.handle_webhook(payload)
