"""
WhatsApp Integration Models
Agent configuration, encrypted provider credentials and the chat log
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class WhatsAppAgentConfig(Base):
    """Per-user auto-responder settings"""

    __tablename__ = "whatsapp_agent_config"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    agent_enabled = Column(Boolean, default=False, nullable=False)
    is_connected = Column(Boolean, default=False, nullable=False)
    # Meta Cloud API phone number id, used to route inbound webhooks
    phone_number_id = Column(String(100), nullable=True, index=True)

    welcome_message = Column(Text, nullable=True)
    default_response = Column(Text, nullable=True)
    llm_prompt = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class WhatsAppKey(Base):
    """Messaging provider credentials (encrypted)"""

    __tablename__ = "whatsapp_keys"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    instance_id = Column(String(100), nullable=True)
    api_key_encrypted = Column(Text, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class ChatMessage(Base):
    """Track inbound messages and the agent's replies"""

    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_from_customer = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
