"""Messaging service - WhatsApp sessions, credentials and the auto-reply agent"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import WHATSAPP_TEST_TO
from ...exceptions import ConflictError, InfrastructureError, NotFoundError, ValidationError
from ...models import User
from ...models_whatsapp import WhatsAppAgentConfig
from ...security_utils import decrypt_credential, encrypt_credential, mask_secret
from ...services import llm_service
from ...services import whatsapp_service
from ...services.whatsapp_service import UltraMsgService, WahaService, qr_data_url
from ...shared.validators import normalize_whatsapp_chat_id
from ...utils.dates import utcnow
from .repository import MessagingRepository
from .schemas import AgentConfigUpdate
from .session_store import SessionStore, session_name_for, user_id_from_session

logger = logging.getLogger(__name__)

DEFAULT_WELCOME = "Olá! Sou o assistente virtual. Como posso ajudar você hoje?"
DEFAULT_RESPONSE = (
    "Obrigado pela mensagem! Estou aqui para ajudar com agendamentos, informações "
    "sobre serviços ou dúvidas gerais. Como posso te ajudar melhor?"
)

GREETING_RE = re.compile(r"\b(oi|olá|ola|bom dia|boa tarde|boa noite)\b", re.IGNORECASE)

KEYWORD_REPLIES = (
    (
        ("agendar", "horário", "horario", "marcar"),
        "Para agendar um horário, preciso de algumas informações. Que serviço você "
        "gostaria? E qual seria a melhor data para você?",
    ),
    (
        ("serviço", "servico"),
        "Oferecemos diversos serviços. Posso listar os serviços disponíveis ou você pode "
        "me dizer qual tipo de serviço está procurando?",
    ),
    (
        ("preço", "preco", "valor", "custo"),
        "Os preços variam conforme o serviço. Posso informar os valores específicos se "
        "você me disser qual serviço te interessa.",
    ),
)

CONNECTED_STATUSES = {"WORKING"}
DISCONNECTED_STATUSES = {"STOPPED", "FAILED"}


@dataclass
class InboundMessage:
    chat_id: str
    text: str
    user_id: Optional[int] = None
    phone_number_id: Optional[str] = None


def keyword_reply(text: str) -> Optional[str]:
    lowered = text.lower()
    for keywords, reply in KEYWORD_REPLIES:
        if any(keyword in lowered for keyword in keywords):
            return reply
    return None


def extract_inbound_messages(payload: dict[str, Any]) -> list[InboundMessage]:
    """
    Pull text messages out of a webhook body.

    Accepts the Meta Cloud API shape (entry[].changes[].value.messages[])
    and the WAHA shape ({"event": "message", "session", "payload"}).
    """
    messages = []

    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
            for message in value.get("messages") or []:
                text = (message.get("text") or {}).get("body") or message.get("body")
                if message.get("from") and text:
                    messages.append(
                        InboundMessage(
                            chat_id=message["from"], text=text, phone_number_id=phone_number_id
                        )
                    )

    if payload.get("event") == "message":
        body = payload.get("payload") or {}
        if not body.get("fromMe") and body.get("from") and body.get("body"):
            messages.append(
                InboundMessage(
                    chat_id=body["from"],
                    text=body["body"],
                    user_id=user_id_from_session(payload.get("session")),
                )
            )

    return messages


class MessagingService:
    """Service layer for the WhatsApp bridge"""

    def __init__(
        self,
        db: Session,
        store: SessionStore,
        waha: Optional[WahaService] = None,
        ultramsg: Optional[UltraMsgService] = None,
    ):
        self.db = db
        self.store = store
        self.repo = MessagingRepository()
        self.waha = waha or whatsapp_service.waha_service
        self.ultramsg = ultramsg or whatsapp_service.ultramsg_service

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_session(self, user: User) -> dict:
        session_name = session_name_for(user.id)
        if self.store.has(user.id):
            raise ConflictError("WhatsApp session is already active", action="disconnect")

        response = await self.waha.start_session(session_name)
        if isinstance(response, dict) and response.get("success") is False:
            logger.error(f"❌ WAHA refused session {session_name}: {response}")
            raise InfrastructureError("Failed to start WhatsApp session")

        self.store.set(user.id, session_name)
        user.whatsapp_connected = False
        self.db.commit()

        logger.info(f"✅ WhatsApp session {session_name} started")
        return {
            "ok": True,
            "sessionName": session_name,
            "message": "WhatsApp session started. Wait for the QR code.",
        }

    async def get_qr(self, user: User) -> dict:
        """QR code for pairing; falls back to the stored connection flag"""
        session_name = session_name_for(user.id)
        try:
            data = await self.waha.get_qr(session_name)
        except (InfrastructureError, httpx.HTTPError) as e:
            logger.warning(f"⚠️ Could not fetch QR for {session_name}: {str(e)}")
            data = None

        if data and data.get("qr"):
            return {
                "qrCode": qr_data_url(data["qr"]),
                "connected": data.get("status") in CONNECTED_STATUSES,
            }
        return {"qrCode": None, "connected": bool(user.whatsapp_connected)}

    def create_connect_qr(self, user: User, phone_number: str) -> dict:
        """QR code the owner scans from the UltraMsg dashboard to link a number"""
        payload = f"ultramsg_connect_{phone_number}_{user.id}_{int(utcnow().timestamp())}"
        return {
            "ok": True,
            "qrCode": qr_data_url(payload),
            "instructions": (
                "Open your UltraMsg dashboard, go to instances and configure the webhook "
                "for this number."
            ),
        }

    async def disconnect(self, user: User) -> dict:
        session_name = session_name_for(user.id)
        try:
            await self.waha.stop_session(session_name)
        except (InfrastructureError, httpx.HTTPError) as e:
            # The local state is reset even when WAHA is unreachable
            logger.error(f"❌ Error stopping WAHA session {session_name}: {str(e)}")

        self.store.delete(user.id)
        user.whatsapp_connected = False
        self.db.commit()
        logger.info(f"📴 WhatsApp disconnected for user {user.id}")
        return {"ok": True, "message": "WhatsApp disconnected"}

    # ------------------------------------------------------------------
    # Credentials and agent config
    # ------------------------------------------------------------------

    def save_credentials(self, user: User, instance_id: Optional[str], api_key: str) -> dict:
        key = self.repo.upsert_key(self.db, user.id, instance_id, encrypt_credential(api_key))
        logger.info(f"🔐 Messaging credentials saved for user {user.id}")
        return {
            "configured": True,
            "instanceId": key.instance_id,
            "apiKeyMasked": mask_secret(api_key),
        }

    def get_credentials(self, user: User) -> dict:
        key = self.repo.get_key(self.db, user.id)
        if not key:
            return {"configured": False, "instanceId": None, "apiKeyMasked": None}
        try:
            masked = mask_secret(decrypt_credential(key.api_key_encrypted))
        except ValueError:
            logger.error(f"❌ Stored credential for user {user.id} cannot be decrypted")
            masked = None
        return {"configured": True, "instanceId": key.instance_id, "apiKeyMasked": masked}

    def get_agent_config(self, user: User) -> WhatsAppAgentConfig:
        config = self.repo.get_or_create_agent_config(self.db, user.id)
        self.db.commit()
        return config

    def update_agent_config(self, user: User, data: AgentConfigUpdate) -> WhatsAppAgentConfig:
        config = self.repo.get_or_create_agent_config(self.db, user.id)
        updates = {
            "agent_enabled": data.agentEnabled,
            "phone_number_id": data.phoneNumberId,
            "welcome_message": data.welcomeMessage,
            "default_response": data.defaultResponse,
            "llm_prompt": data.llmPrompt,
        }
        for key, value in updates.items():
            if value is not None:
                setattr(config, key, value)
        self.db.commit()
        self.db.refresh(config)
        return config

    async def test_connection(self, user: User) -> dict:
        """Send a test message through UltraMsg and record whether it worked"""
        key = self.repo.get_key(self.db, user.id)
        if not key or not key.api_key_encrypted:
            raise NotFoundError("UltraMsg configuration not found for this user")

        try:
            api_key = decrypt_credential(key.api_key_encrypted)
        except ValueError as e:
            logger.error(f"❌ Stored UltraMsg key for user {user.id} is unreadable: {str(e)}")
            raise ValidationError(
                "Stored UltraMsg credentials could not be read, save them again", field="apiKey"
            ) from e
        config = self.repo.get_or_create_agent_config(self.db, user.id)
        try:
            result = await self.ultramsg.send_message(
                key.instance_id, api_key, WHATSAPP_TEST_TO, "Teste de conexão - WhatsApp AI Agent"
            )
        except (InfrastructureError, httpx.HTTPError) as e:
            logger.error(f"❌ UltraMsg test failed for user {user.id}: {str(e)}")
            config.is_connected = False
            self.db.commit()
            raise InfrastructureError("Test message could not be sent") from e

        config.is_connected = True
        self.db.commit()
        logger.info(f"✅ UltraMsg test message sent for user {user.id}")
        return {"ok": True, "whatsapp": result}

    def get_messages(self, user: User, phone: Optional[str] = None) -> list:
        return self.repo.get_messages(self.db, user.id, normalize_whatsapp_chat_id(phone) or None)

    # ------------------------------------------------------------------
    # Inbound webhook
    # ------------------------------------------------------------------

    async def build_reply(self, config: WhatsAppAgentConfig, text: str) -> str:
        """
        Greeting, then LLM, then keyword replies, then the default response.

        An empty model answer goes straight to the default response; keyword
        replies only cover an unconfigured or failing LLM.
        """
        if GREETING_RE.search(text):
            return config.welcome_message or DEFAULT_WELCOME

        try:
            reply = await llm_service.generate_reply(text, config.llm_prompt)
            if reply is not None:
                return reply or config.default_response or DEFAULT_RESPONSE
        except Exception as e:
            logger.error(f"❌ LLM reply failed, using canned replies: {str(e)}")

        return keyword_reply(text) or config.default_response or DEFAULT_RESPONSE

    async def process_incoming(self, user_id: int, chat_id: str, text: str) -> Optional[str]:
        """Answer one customer message; None when the agent stays silent"""
        text = (text or "").strip()
        if not text:
            return None

        config = self.repo.get_agent_config(self.db, user_id)
        if not config or not config.agent_enabled:
            logger.debug(f"Agent disabled for user {user_id}, ignoring message")
            return None

        reply = await self.build_reply(config, text)
        phone = normalize_whatsapp_chat_id(chat_id)
        waha_chat_id = chat_id if "@" in chat_id else f"{phone}@c.us"

        try:
            await self.waha.send_text(session_name_for(user_id), waha_chat_id, reply)
        except (InfrastructureError, httpx.HTTPError) as e:
            logger.error(f"❌ Failed to send WhatsApp reply to {phone}: {str(e)}")

        self.repo.add_messages(self.db, user_id, phone, text, reply)
        logger.info(f"💬 Replied to {phone} for user {user_id}")
        return reply

    def _apply_session_status(self, payload: dict[str, Any]) -> None:
        user_id = user_id_from_session(payload.get("session"))
        status = ((payload.get("payload") or {}).get("status") or "").upper()
        user = self.repo.get_user(self.db, user_id) if user_id else None
        if not user:
            return

        if status in CONNECTED_STATUSES:
            user.whatsapp_connected = True
            config = self.repo.get_or_create_agent_config(self.db, user.id)
            config.agent_enabled = True
            logger.info(f"✅ WhatsApp connected for user {user.id}")
        elif status in DISCONNECTED_STATUSES:
            user.whatsapp_connected = False
            self.store.delete(user.id)
            logger.info(f"📴 WhatsApp session {status} for user {user.id}")
        self.db.commit()

    async def handle_webhook(self, payload: dict[str, Any]) -> dict:
        if payload.get("event") == "session.status":
            self._apply_session_status(payload)
            return {"ok": True, "processed": 0}

        processed = 0
        for inbound in extract_inbound_messages(payload):
            user_id = inbound.user_id
            if user_id is None and inbound.phone_number_id:
                config = self.repo.get_config_by_phone_number_id(self.db, inbound.phone_number_id)
                user_id = config.user_id if config else None
            if user_id is None:
                logger.warning(f"⚠️ Webhook message for unknown tenant from {inbound.chat_id}")
                continue

            try:
                if await self.process_incoming(user_id, inbound.chat_id, inbound.text):
                    processed += 1
            except Exception as e:
                # One bad message must not make the provider redeliver the batch
                self.db.rollback()
                logger.exception(f"❌ Error processing message for user {user_id}: {str(e)}")

        return {"ok": True, "processed": processed}
