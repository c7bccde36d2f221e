"""
OneSignal push notifications for booking confirmations.
"""

from __future__ import annotations

import asyncio
import logging

import requests

from ..config import OneSignalConfig
from ..services.booking_service import PermissionState


logger = logging.getLogger(__name__)


class OneSignalNotifier:
    """
    Sends notifications through the OneSignal REST API.

    Notifications only ever go to the given external user ids. Without a
    target, or without app credentials, permission is denied and nothing
    is sent.
    """

    API_ENDPOINT = "https://onesignal.com/api/v1/notifications"

    def __init__(self, config: OneSignalConfig, external_user_ids: list[str] | None = None, timeout: float = 10):
        self.config = config
        self.external_user_ids = [user_id for user_id in external_user_ids or [] if user_id]
        self.timeout = timeout

    async def request_permission(self) -> PermissionState:
        if self.config.is_configured() and self.external_user_ids:
            return PermissionState.GRANTED
        return PermissionState.DENIED

    async def notify(self, title: str, body: str) -> None:
        await asyncio.to_thread(self._send, title, body)

    def _send(self, title: str, body: str) -> None:
        if not self.external_user_ids:
            raise RuntimeError("OneSignal notification has no recipient")

        payload = {
            "app_id": self.config.app_id,
            "include_external_user_ids": self.external_user_ids,
            "headings": {"en": title, "pt": title},
            "contents": {"en": body, "pt": body},
        }

        try:
            response = requests.post(
                self.API_ENDPOINT,
                headers={
                    "Authorization": f"Basic {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RuntimeError(f"Failed to send OneSignal notification: {e}") from e

        logger.debug("OneSignal accepted notification %r for %s", title, self.external_user_ids)
