import asyncio
import base64

import pytest

from salonbook.domain.messaging import service as messaging_service
from salonbook.domain.messaging.service import (
    DEFAULT_RESPONSE,
    DEFAULT_WELCOME,
    GREETING_RE,
    extract_inbound_messages,
    keyword_reply,
)
from salonbook.exceptions import InfrastructureError
from salonbook.models_whatsapp import WhatsAppAgentConfig, WhatsAppKey
from salonbook.services import llm_service, whatsapp_service


class FakeWaha:
    def __init__(self):
        self.started = []
        self.stopped = []
        self.sent = []
        self.qr = {"qr": "2@pairing-code", "status": "SCAN_QR_CODE"}
        self.fail = False

    async def start_session(self, session_name):
        self.started.append(session_name)
        return {"name": session_name, "status": "STARTING"}

    async def get_qr(self, session_name):
        if self.fail:
            raise InfrastructureError("WhatsApp QR code is temporarily unavailable")
        return self.qr

    async def stop_session(self, session_name):
        if self.fail:
            raise InfrastructureError("WhatsApp session stop is temporarily unavailable")
        self.stopped.append(session_name)

    async def send_text(self, session_name, chat_id, text):
        self.sent.append((session_name, chat_id, text))
        return {"id": "msg-1"}


class FakeUltraMsg:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_message(self, instance_id, token, to, body):
        if self.fail:
            raise InfrastructureError("UltraMsg send is temporarily unavailable")
        self.sent.append((instance_id, token, to, body))
        return {"sent": "true"}


@pytest.fixture
def waha(monkeypatch):
    fake = FakeWaha()
    monkeypatch.setattr(whatsapp_service, "waha_service", fake)
    return fake


@pytest.fixture
def ultramsg(monkeypatch):
    fake = FakeUltraMsg()
    monkeypatch.setattr(whatsapp_service, "ultramsg_service", fake)
    return fake


@pytest.fixture
def no_llm(monkeypatch):
    async def generate_reply(message, system_prompt=None):
        return None

    monkeypatch.setattr(llm_service, "generate_reply", generate_reply)


@pytest.fixture
def agent(db, owner):
    config = WhatsAppAgentConfig(
        user_id=owner.id,
        agent_enabled=True,
        phone_number_id="1029384756",
        welcome_message="Bem-vinda ao Salão Teste!",
    )
    db.add(config)
    db.commit()
    return config


def waha_message(owner, text, sender="5511988887777@c.us", from_me=False):
    return {
        "event": "message",
        "session": f"user_{owner.id}",
        "payload": {"from": sender, "body": text, "fromMe": from_me},
    }


# ============================================================================
# REPLY RULES
# ============================================================================


def test_greetings_match_whole_words():
    assert GREETING_RE.search("Oi, tudo bem?")
    assert GREETING_RE.search("bom dia!")
    assert not GREETING_RE.search("oito horas está livre?")


def test_keyword_replies():
    assert keyword_reply("Quero marcar um horário").startswith("Para agendar")
    assert keyword_reply("Quais serviços vocês têm?").startswith("Oferecemos")
    assert keyword_reply("Qual o preço da escova?").startswith("Os preços")
    assert keyword_reply("tchau") is None


def test_extract_meta_payload():
    payload = {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "metadata": {"phone_number_id": "1029384756"},
                            "messages": [{"from": "5511988887777", "text": {"body": "Olá"}}],
                        }
                    }
                ]
            }
        ]
    }
    [message] = extract_inbound_messages(payload)
    assert message.phone_number_id == "1029384756"
    assert message.chat_id == "5511988887777"
    assert message.text == "Olá"


def test_extract_skips_own_messages(owner):
    assert extract_inbound_messages(waha_message(owner, "oi", from_me=True)) == []


def build_reply(db, text, **config):
    service = messaging_service.MessagingService(db, store=None)
    return asyncio.run(service.build_reply(WhatsAppAgentConfig(**config), text))


def test_reply_prefers_greeting(db, no_llm):
    assert build_reply(db, "oi") == DEFAULT_WELCOME
    assert build_reply(db, "boa tarde", welcome_message="Olá!") == "Olá!"


def test_reply_uses_llm_answer(db, monkeypatch):
    async def generate_reply(message, system_prompt=None):
        return f"IA: {message} ({system_prompt})"

    monkeypatch.setattr(llm_service, "generate_reply", generate_reply)
    assert build_reply(db, "tem horário amanhã?", llm_prompt="seja breve") == "IA: tem horário amanhã? (seja breve)"


def test_reply_falls_back_to_keywords_when_llm_fails(db, monkeypatch):
    async def generate_reply(message, system_prompt=None):
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(llm_service, "generate_reply", generate_reply)
    assert build_reply(db, "quero agendar").startswith("Para agendar")


def test_reply_default_response(db, no_llm):
    assert build_reply(db, "tchau") == DEFAULT_RESPONSE
    assert build_reply(db, "tchau", default_response="Até logo") == "Até logo"


def test_empty_llm_answer_uses_default_response(db, monkeypatch):
    async def generate_reply(message, system_prompt=None):
        return ""

    monkeypatch.setattr(llm_service, "generate_reply", generate_reply)
    assert build_reply(db, "quero agendar") == DEFAULT_RESPONSE
    assert build_reply(db, "quero agendar", default_response="Até logo") == "Até logo"


# ============================================================================
# SESSIONS
# ============================================================================


def test_start_session_once(client, owner, owner_headers, waha, session_store):
    response = client.post("/whatsapp/start-session", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["sessionName"] == f"user_{owner.id}"
    assert waha.started == [f"user_{owner.id}"]
    assert session_store.has(owner.id)

    again = client.post("/whatsapp/start-session", headers=owner_headers)
    assert again.status_code == 409


def test_qr_code_is_a_png_data_url(client, owner_headers, waha):
    body = client.get("/whatsapp/qr", headers=owner_headers).json()
    assert body["qrCode"].startswith("data:image/png;base64,")
    assert body["connected"] is False


def test_qr_falls_back_to_stored_connection_state(client, db, owner, owner_headers, waha):
    owner.whatsapp_connected = True
    db.commit()
    waha.fail = True

    body = client.get("/whatsapp/qr", headers=owner_headers).json()
    assert body == {"qrCode": None, "connected": True}


def test_connect_qr_for_phone(client, owner_headers):
    response = client.post("/whatsapp/qr", json={"phoneNumber": "+55 11 98888-7777"}, headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["qrCode"].startswith("data:image/png;base64,")


def test_disconnect_resets_state_even_if_provider_fails(client, db, owner, owner_headers, waha, session_store):
    session_store.set(owner.id, f"user_{owner.id}")
    owner.whatsapp_connected = True
    db.commit()
    waha.fail = True

    response = client.post("/whatsapp/disconnect", headers=owner_headers)
    assert response.status_code == 200
    assert not session_store.has(owner.id)
    db.expire_all()
    assert owner.whatsapp_connected is False


def test_session_status_webhook_marks_connected(client, db, owner, waha):
    payload = {"event": "session.status", "session": f"user_{owner.id}", "payload": {"status": "WORKING"}}

    assert client.post("/webhook/whatsapp", json=payload).status_code == 200

    db.expire_all()
    assert owner.whatsapp_connected is True
    assert db.query(WhatsAppAgentConfig).filter_by(user_id=owner.id).one().agent_enabled is True


# ============================================================================
# CREDENTIALS
# ============================================================================


def test_credentials_are_stored_encrypted(client, db, owner, owner_headers):
    response = client.put(
        "/whatsapp/credentials", json={"instanceId": "instance42", "apiKey": "tok-abcdef9876"}, headers=owner_headers
    )
    assert response.json() == {"configured": True, "instanceId": "instance42", "apiKeyMasked": "****9876"}

    stored = db.query(WhatsAppKey).filter_by(user_id=owner.id).one()
    assert "tok-abcdef9876" not in stored.api_key_encrypted

    assert client.get("/whatsapp/credentials", headers=owner_headers).json()["apiKeyMasked"] == "****9876"


def test_test_connection_without_credentials(client, owner_headers, ultramsg):
    assert client.post("/whatsapp/test", headers=owner_headers).status_code == 404


def test_test_connection_success_and_failure(client, db, owner, owner_headers, ultramsg):
    client.put("/whatsapp/credentials", json={"instanceId": "instance42", "apiKey": "tok-1"}, headers=owner_headers)

    assert client.post("/whatsapp/test", headers=owner_headers).status_code == 200
    assert ultramsg.sent[0][:2] == ("instance42", "tok-1")
    assert client.get("/whatsapp/agent-config", headers=owner_headers).json()["isConnected"] is True

    ultramsg.fail = True
    assert client.post("/whatsapp/test", headers=owner_headers).status_code == 503
    assert client.get("/whatsapp/agent-config", headers=owner_headers).json()["isConnected"] is False


def test_test_connection_with_unreadable_key(client, db, owner, owner_headers, ultramsg):
    db.add(
        WhatsAppKey(
            user_id=owner.id,
            instance_id="instance42",
            api_key_encrypted=base64.b64encode(b"\x00" * 40).decode(),
        )
    )
    db.commit()

    response = client.post("/whatsapp/test", headers=owner_headers)

    assert response.status_code == 422
    assert response.json()["field"] == "apiKey"
    assert ultramsg.sent == []


def test_agent_config_update(client, owner_headers):
    response = client.put(
        "/whatsapp/agent-config",
        json={"agentEnabled": True, "welcomeMessage": "Oi! Aqui é o salão."},
        headers=owner_headers,
    )
    body = response.json()
    assert body["agentEnabled"] is True
    assert body["welcomeMessage"] == "Oi! Aqui é o salão."
    assert body["defaultResponse"] is None


# ============================================================================
# INBOUND MESSAGES
# ============================================================================


def test_waha_message_gets_reply_and_is_logged(client, owner, owner_headers, agent, waha, no_llm):
    response = client.post("/webhook/whatsapp", json=waha_message(owner, "Oi"))
    assert response.json() == {"ok": True, "processed": 1}
    assert waha.sent == [(f"user_{owner.id}", "5511988887777@c.us", "Bem-vinda ao Salão Teste!")]

    log = client.get("/whatsapp/messages", params={"phone": "5511988887777"}, headers=owner_headers).json()
    assert sorted((m["isFromCustomer"], m["message"]) for m in log) == [
        (False, "Bem-vinda ao Salão Teste!"),
        (True, "Oi"),
    ]


def test_meta_message_routed_by_phone_number_id(client, owner, agent, waha, no_llm):
    payload = {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "metadata": {"phone_number_id": "1029384756"},
                            "messages": [{"from": "5511988887777", "text": {"body": "qual o valor?"}}],
                        }
                    }
                ]
            }
        ]
    }
    assert client.post("/webhook/whatsapp", json=payload).json()["processed"] == 1
    assert waha.sent[0][1] == "5511988887777@c.us"
    assert waha.sent[0][2].startswith("Os preços")


def test_disabled_agent_stays_silent(client, db, owner, agent, waha, no_llm):
    agent.agent_enabled = False
    db.commit()

    assert client.post("/webhook/whatsapp", json=waha_message(owner, "Oi")).json()["processed"] == 0
    assert waha.sent == []


def test_unknown_tenant_is_ignored(client, waha):
    payload = {"event": "message", "session": "default", "payload": {"from": "5511988887777@c.us", "body": "Oi"}}
    assert client.post("/webhook/whatsapp", json=payload).json() == {"ok": True, "processed": 0}


def test_invalid_json_body(client):
    response = client.post(
        "/webhook/whatsapp", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
