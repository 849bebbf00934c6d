"""SmartSentry — Resource API wrappers

Thin mappings from domain operations to HttpClient calls. Errors are the
HttpClient's classified ApiErrors, passed through unchanged.
"""

import json
from typing import Any, Optional

from smartsentry.config import CHAT_TIMEOUT, HISTORY_PAGE_SIZE, SOS_TIMEOUT
from smartsentry.http_client import HttpClient


class AuthAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def register(self, profile: dict) -> dict:
        res = await self.http.request("/auth/register", "POST", profile, requires_auth=False)
        if isinstance(res, dict) and res.get("token"):
            await self.http.token_store.save(res["token"])
        return res

    async def login(self, creds: dict) -> dict:
        res = await self.http.request("/auth/login", "POST", creds, requires_auth=False)
        if isinstance(res, dict) and res.get("token"):
            await self.http.token_store.save(res["token"])
        return res

    async def load_token(self) -> Optional[str]:
        return await self.http.token_store.load()

    async def logout(self) -> None:
        await self.http.token_store.clear()


class ProfileAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def get(self) -> dict:
        return await self.http.request("/profile", "GET")

    async def update(self, fields: dict) -> dict:
        return await self.http.request("/profile", "PUT", fields)


class ContactsAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def get_all(self) -> list[dict]:
        return await self.http.request("/contacts", "GET")

    async def add(self, contact: dict) -> dict:
        return await self.http.request("/contacts", "POST", contact)

    async def update(self, contact_id: str, fields: dict) -> dict:
        return await self.http.request(f"/contacts/{contact_id}", "PUT", fields)

    async def delete(self, contact_id: str) -> dict:
        return await self.http.request(f"/contacts/{contact_id}", "DELETE")


class SOSAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def log_emergency(self, event: dict) -> dict:
        return await self.http.request("/sos/start", "POST", event, timeout=SOS_TIMEOUT)

    async def get_history(self, limit: int = HISTORY_PAGE_SIZE, page: int = 1) -> dict:
        return await self.http.request("/sos/history", "GET", params={"limit": limit, "page": page})


class ChatAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def send_message(self, message: str, context: Optional[dict] = None) -> dict:
        return await self.http.request(
            "/chat", "POST", {"message": message, "context": context or {}},
            timeout=CHAT_TIMEOUT, max_attempts=1,
        )


class EvidenceAPI:
    def __init__(self, http: HttpClient):
        self.http = http

    async def get_all(self, limit: int = 20, page: int = 1) -> dict:
        return await self.http.request("/evidence", "GET", params={"limit": limit, "page": page})

    async def get_by_sos_id(self, sos_id: str) -> dict:
        return await self.http.request(f"/evidence/sos/{sos_id}", "GET")

    async def share(self, evidence_id: str, recipients: list[str]) -> dict:
        return await self.http.request(f"/evidence/{evidence_id}/share", "POST", {"recipients": recipients})

    async def upload(self, sos_id: str, evidence_type: str, location: Any,
                     files: list[tuple[str, tuple]]) -> dict:
        """Upload evidence as multipart form data.

        ``files`` is a list of ``("files", (filename, content, mime_type))`` tuples.
        """
        form = {
            "sosId": sos_id,
            "type": evidence_type,
            "location": location if isinstance(location, str) else json.dumps(location),
        }
        return await self.http.request("/evidence/upload", "POST", form, files=files)


class SmartSentryAPI:
    """All resource APIs sharing one HttpClient."""

    def __init__(self, http: HttpClient):
        self.http = http
        self.auth = AuthAPI(http)
        self.profile = ProfileAPI(http)
        self.contacts = ContactsAPI(http)
        self.sos = SOSAPI(http)
        self.chat = ChatAPI(http)
        self.evidence = EvidenceAPI(http)
