import base64
import io
import logging
from typing import Any, Optional

import httpx
import qrcode

from ..config import BASE_URL, ULTRAMSG_API_BASE, WAHA_API_BASE, WAHA_API_KEY
from ..retry import retry_async

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = httpx.Timeout(15.0, connect=5.0)


class WahaService:
    """Client for a WAHA-compatible WhatsApp HTTP API"""

    def __init__(self, base_url: str = WAHA_API_BASE, api_key: Optional[str] = WAHA_API_KEY):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def _request(self, method: str, path: str, description: str, **kwargs) -> Any:
        async def call():
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
                )
                response.raise_for_status()
                return response.json() if response.content else {}

        return await retry_async(call, description)

    async def start_session(self, session_name: str) -> dict[str, Any]:
        """Start a session whose events are posted back to our webhook"""
        logger.info(f"📱 Starting WAHA session {session_name}")
        payload = {
            "name": session_name,
            "config": {
                "webhooks": [
                    {
                        "url": f"{BASE_URL}/webhook/whatsapp",
                        "events": ["message", "session.status"],
                    }
                ]
            },
        }
        return await self._request("POST", "/api/sessions/start", "WhatsApp session start", json=payload)

    async def get_qr(self, session_name: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/sessions/{session_name}/qr", "WhatsApp QR code")

    async def stop_session(self, session_name: str) -> None:
        logger.info(f"📴 Stopping WAHA session {session_name}")
        await self._request(
            "POST", "/api/sessions/stop", "WhatsApp session stop", json={"name": session_name}
        )

    async def send_text(self, session_name: str, chat_id: str, text: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/sendText",
            "WhatsApp send",
            json={"session": session_name, "chatId": chat_id, "text": text},
        )


class UltraMsgService:
    """Client for the UltraMsg API (per-user instance and token)"""

    def __init__(self, base_url: str = ULTRAMSG_API_BASE):
        self.base_url = base_url.rstrip("/")

    async def send_message(self, instance_id: str, token: str, to: str, body: str) -> dict[str, Any]:
        url = f"{self.base_url}/{instance_id}/messages/chat"

        async def call():
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                response = await client.post(
                    url, params={"token": token}, json={"to": to, "body": body}
                )
                response.raise_for_status()
                return response.json()

        return await retry_async(call, "UltraMsg send")


def qr_data_url(data: str) -> str:
    """Render a QR payload as a PNG data URL for the frontend"""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


waha_service = WahaService()
ultramsg_service = UltraMsgService()
