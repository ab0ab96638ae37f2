"""Messaging repository - Agent config, provider credentials and chat log"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...models_whatsapp import ChatMessage, WhatsAppAgentConfig, WhatsAppKey


class MessagingRepository:
    """Repository for WhatsApp integration data"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_agent_config(db: Session, user_id: int) -> Optional[WhatsAppAgentConfig]:
        return db.query(WhatsAppAgentConfig).filter(WhatsAppAgentConfig.user_id == user_id).first()

    @staticmethod
    def get_or_create_agent_config(db: Session, user_id: int) -> WhatsAppAgentConfig:
        config = MessagingRepository.get_agent_config(db, user_id)
        if not config:
            config = WhatsAppAgentConfig(user_id=user_id)
            db.add(config)
            db.flush()
        return config

    @staticmethod
    def get_config_by_phone_number_id(db: Session, phone_number_id: str) -> Optional[WhatsAppAgentConfig]:
        return (
            db.query(WhatsAppAgentConfig)
            .filter(WhatsAppAgentConfig.phone_number_id == phone_number_id)
            .first()
        )

    @staticmethod
    def get_key(db: Session, user_id: int) -> Optional[WhatsAppKey]:
        return db.query(WhatsAppKey).filter(WhatsAppKey.user_id == user_id).first()

    @staticmethod
    def upsert_key(db: Session, user_id: int, instance_id: Optional[str], encrypted: str) -> WhatsAppKey:
        key = MessagingRepository.get_key(db, user_id)
        if key:
            key.api_key_encrypted = encrypted
            if instance_id is not None:
                key.instance_id = instance_id
        else:
            key = WhatsAppKey(user_id=user_id, instance_id=instance_id, api_key_encrypted=encrypted)
            db.add(key)
        db.commit()
        db.refresh(key)
        return key

    @staticmethod
    def add_messages(db: Session, user_id: int, phone: str, inbound: str, reply: Optional[str]) -> None:
        db.add(ChatMessage(user_id=user_id, customer_phone=phone, message=inbound, is_from_customer=True))
        if reply:
            db.add(ChatMessage(user_id=user_id, customer_phone=phone, message=reply, is_from_customer=False))
        db.commit()

    @staticmethod
    def get_messages(
        db: Session, user_id: int, phone: Optional[str] = None, limit: int = 100
    ) -> list[ChatMessage]:
        query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
        if phone:
            query = query.filter(ChatMessage.customer_phone == phone)
        return query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit).all()
