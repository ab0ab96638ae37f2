"""Messaging domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_phone


class CredentialsRequest(BaseModel):
    """UltraMsg instance id and API token"""

    instanceId: Optional[str] = None
    apiKey: str

    @field_validator("apiKey")
    @classmethod
    def validate_api_key(cls, v):
        if not v or not v.strip():
            raise ValueError("API key is required")
        return v.strip()


class CredentialsResponse(BaseModel):
    configured: bool
    instanceId: Optional[str] = None
    apiKeyMasked: Optional[str] = None


class ConnectQrRequest(BaseModel):
    phoneNumber: str

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)


class AgentConfigUpdate(BaseModel):
    agentEnabled: Optional[bool] = None
    phoneNumberId: Optional[str] = None
    welcomeMessage: Optional[str] = None
    defaultResponse: Optional[str] = None
    llmPrompt: Optional[str] = None


class AgentConfigResponse(BaseModel):
    agentEnabled: bool
    isConnected: bool
    phoneNumberId: Optional[str] = None
    welcomeMessage: Optional[str] = None
    defaultResponse: Optional[str] = None
    llmPrompt: Optional[str] = None


class ChatMessageResponse(BaseModel):
    id: int
    customerPhone: str
    message: str
    isFromCustomer: bool
    created_at: Optional[datetime] = None
