"""
Supabase (PostgREST) client for professionals, services and appointments.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Sequence

import requests

from ..config import SupabaseConfig
from ..domain.exceptions import StoreError
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Professional,
    Service,
    WeeklyAvailability,
)
from .rows import (
    APPOINTMENT_COLUMNS,
    PROFESSIONAL_COLUMNS,
    SERVICE_COLUMNS,
    appointment_from_row,
    draft_to_row,
    professional_from_row,
    service_from_row,
)


logger = logging.getLogger(__name__)


class SupabaseStore:
    """
    Client for the hosted tables behind the booking application.

    Uses the PostgREST endpoint ``/rest/v1/<table>``. HTTP calls are blocking
    ``requests`` calls run in a worker thread so the async store protocol
    holds. There is no write-time overlap check here; two sessions racing for
    the same slot can both succeed unless the database adds a constraint.
    """

    def __init__(
        self,
        config: SupabaseConfig,
        timezone: str = "America/Sao_Paulo",
        access_token: str | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the store client.

        Args:
            config: URL, anon key and timeout of the Supabase project
            timezone: IANA timezone used for parsed timestamps
            access_token: Optional user JWT; the anon key is used otherwise
            session: Optional preconfigured requests session
        """
        self.base_url = f"{config.url}/rest/v1"
        self.timeout = config.timeout_seconds
        self.timezone = timezone
        self.session = session or requests.Session()
        self.headers = {
            "apikey": config.anon_key,
            "Authorization": f"Bearer {access_token or config.anon_key}",
            "Content-Type": "application/json",
        }

    async def list_professionals(self) -> List[Professional]:
        rows = await self._request("GET", "professionals", params={"select": PROFESSIONAL_COLUMNS})
        return [professional_from_row(row) for row in rows]

    async def get_professional(self, professional_id: int) -> Professional | None:
        rows = await self._request(
            "GET",
            "professionals",
            params={"select": PROFESSIONAL_COLUMNS, "id": f"eq.{professional_id}"},
        )
        return professional_from_row(rows[0]) if rows else None

    async def find_professional_by_user(self, user_id: str) -> Professional | None:
        rows = await self._request(
            "GET",
            "professionals",
            params={"select": PROFESSIONAL_COLUMNS, "user_id": f"eq.{user_id}"},
        )
        return professional_from_row(rows[0]) if rows else None

    async def list_services(self, ids: Sequence[int] | None = None) -> List[Service]:
        params = {"select": SERVICE_COLUMNS}
        if ids is not None:
            if not ids:
                return []
            params["id"] = f"in.({','.join(str(i) for i in ids)})"
        rows = await self._request("GET", "services", params=params)
        return [service_from_row(row) for row in rows]

    async def fetch_appointments(self, professional_id: int) -> List[Appointment]:
        rows = await self._request(
            "GET",
            "appointments",
            params={"select": APPOINTMENT_COLUMNS, "professionalId": f"eq.{professional_id}"},
        )
        appointments: List[Appointment] = []
        for row in rows:
            try:
                appointments.append(appointment_from_row(row, self.timezone))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping unreadable appointment row %s: %s", row.get("id"), exc)
        return appointments

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        rows = await self._request(
            "POST",
            "appointments",
            params={"select": APPOINTMENT_COLUMNS},
            json=draft_to_row(draft),
            prefer="return=representation",
        )
        if not rows:
            raise StoreError("Appointment insert returned no row")
        return appointment_from_row(rows[0], self.timezone)

    async def update_availability(
        self,
        professional_id: int,
        availability: WeeklyAvailability,
    ) -> Professional:
        rows = await self._request(
            "PATCH",
            "professionals",
            params={"select": PROFESSIONAL_COLUMNS, "id": f"eq.{professional_id}"},
            json={"availability": availability.to_mapping()},
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Unknown professional: {professional_id}")
        return professional_from_row(rows[0])

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, str] | None = None,
        json: Dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._send, method, table, params, json, prefer)

    def _send(
        self,
        method: str,
        table: str,
        params: Dict[str, str] | None,
        json: Dict[str, Any] | None,
        prefer: str | None,
    ) -> List[Dict[str, Any]]:
        """
        Perform one blocking REST call.

        Raises:
            StoreError: If the call fails or the response is not a row list
        """
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.session.request(
                method,
                f"{self.base_url}/{table}",
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json() if response.content else []
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Request to '{table}' failed: {_describe(e)}") from e
        except ValueError as e:
            raise StoreError(f"Invalid JSON from '{table}': {e}") from e

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise StoreError(f"Unexpected response from '{table}': {data!r}")
        return data


def _describe(error: requests.exceptions.RequestException) -> str:
    """Prefer the PostgREST error body (message, details, hint) when present."""
    response = getattr(error, "response", None)
    if response is None:
        return str(error)
    try:
        body = response.json()
    except ValueError:
        return f"{response.status_code} {response.text}".strip()

    parts = [body.get(key) for key in ("message", "details", "hint") if isinstance(body, dict)]
    detail = " | ".join(str(part) for part in parts if part)
    return f"{response.status_code} {detail}".strip()
