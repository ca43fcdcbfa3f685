from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from honeypos.config import settings

logger = logging.getLogger(__name__)


class LineMessagingClient:
    """Thin wrapper over the LINE Messaging API.

    Calls never raise on HTTP or network failures; they log and report the
    failure through their return value.
    """

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.access_token = access_token
        self.base_url = (base_url or settings.line_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.line_request_timeout

    @property
    def configured(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _post(self, path: str, payload: dict) -> bool:
        if not self.configured:
            logger.warning("LINE access token not configured, skipping %s", path)
            return False
        try:
            resp = requests.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.error("LINE request %s failed: %s", path, e)
            return False

    def _get(self, path: str) -> Optional[dict[str, Any]]:
        if not self.configured:
            logger.warning("LINE access token not configured, skipping %s", path)
            return None
        try:
            resp = requests.get(
                f"{self.base_url}{path}",
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("LINE request %s failed: %s", path, e)
            return None

    def push_text(self, user_id: str, text: str) -> bool:
        return self._post(
            "/v2/bot/message/push",
            {"to": user_id, "messages": [{"type": "text", "text": text}]},
        )

    def broadcast_text(self, text: str) -> bool:
        return self._post("/v2/bot/message/broadcast", {"messages": [{"type": "text", "text": text}]})

    def get_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._get(f"/v2/bot/profile/{user_id}")

    def get_bot_info(self) -> Optional[dict[str, Any]]:
        return self._get("/v2/bot/info")
