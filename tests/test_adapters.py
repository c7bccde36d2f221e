"""
Tests for the store and notification adapters.
"""

import asyncio
import json

import pendulum
import pytest
import requests

from beautybook.adapters.memory_store import MemoryStore
from beautybook.adapters.onesignal_notifier import OneSignalNotifier
from beautybook.adapters.supabase_store import SupabaseStore
from beautybook.config import OneSignalConfig, SupabaseConfig
from beautybook.domain.exceptions import StoreError
from beautybook.domain.models import AppointmentDraft, TimeRange, WeeklyAvailability
from beautybook.services.booking_service import PermissionState


TZ = "America/Sao_Paulo"


def _draft(hour: int, professional_id: int = 1) -> AppointmentDraft:
    return AppointmentDraft(
        professional_id=professional_id,
        service_id=1,
        client_name="Joana",
        client_contact="+5511988888888",
        start_time=pendulum.datetime(2030, 1, 1, hour, tz=TZ),
        end_time=pendulum.datetime(2030, 1, 1, hour + 1, tz=TZ),
    )


class TestMemoryStore:
    """Tests for the in-memory store and its bundled sample data."""

    def test_bundled_sample_data_loads(self):
        store = MemoryStore.from_json(timezone=TZ)

        professionals = asyncio.run(store.list_professionals())
        services = asyncio.run(store.list_services())

        assert [p.name for p in professionals][:2] == ["Ana Silva", "Bruno Costa"]
        assert len(services) == 5
        ana = asyncio.run(store.get_professional(1))
        assert ana.availability.ranges_for(2) == [TimeRange(9, 12), TimeRange(13, 18)]
        assert [a.client_name for a in asyncio.run(store.fetch_appointments(1))] == ["Joana", "Maria"]

    def test_list_services_keeps_requested_ids_only(self):
        store = MemoryStore.from_json(timezone=TZ)

        assert [s.id for s in asyncio.run(store.list_services([4, 99, 1]))] == [4, 1]

    def test_missing_file_raises_store_error(self, tmp_path):
        with pytest.raises(StoreError, match="Could not load"):
            MemoryStore.from_json(tmp_path / "missing.json")

    def test_malformed_rows_raise_store_error(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text(json.dumps({"services": [{"id": 1}]}), encoding="utf-8")

        with pytest.raises(StoreError, match="Invalid mock data"):
            MemoryStore.from_json(data_file)

    def test_create_assigns_next_id(self):
        store = MemoryStore(timezone=TZ)

        first = asyncio.run(store.create_appointment(_draft(9)))
        second = asyncio.run(store.create_appointment(_draft(10)))

        assert (first.id, second.id) == (1, 2)
        assert first.created_at is not None

    def test_overlapping_create_is_refused(self):
        store = MemoryStore(timezone=TZ)
        asyncio.run(store.create_appointment(_draft(9)))

        with pytest.raises(StoreError, match="already occupies"):
            asyncio.run(store.create_appointment(_draft(9)))

    def test_overlap_check_is_per_professional_and_optional(self):
        store = MemoryStore(timezone=TZ)
        asyncio.run(store.create_appointment(_draft(9)))
        asyncio.run(store.create_appointment(_draft(9, professional_id=2)))

        relaxed = MemoryStore(timezone=TZ, reject_overlaps=False)
        asyncio.run(relaxed.create_appointment(_draft(9)))
        asyncio.run(relaxed.create_appointment(_draft(9)))

        assert len(asyncio.run(relaxed.fetch_appointments(1))) == 2

    def test_update_availability(self):
        store = MemoryStore.from_json(timezone=TZ)
        updated = asyncio.run(store.update_availability(2, WeeklyAvailability({0: [TimeRange(8, 12)]})))

        assert updated.availability.open_weekdays() == [0]
        with pytest.raises(StoreError):
            asyncio.run(store.update_availability(99, WeeklyAvailability()))


class FakeResponse:
    def __init__(self, payload, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code
        self.content = json.dumps(payload).encode()
        self.text = json.dumps(payload)

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Records requests and replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


APPOINTMENT_ROW = {
    "id": 10,
    "created_at": "2030-01-01T12:00:00+00:00",
    "professionalId": 1,
    "serviceId": 1,
    "clientName": "Joana",
    "clientWhatsapp": "+5511988888888",
    "startTime": "2030-01-01T12:00:00+00:00",
    "endTime": "2030-01-01T13:00:00+00:00",
}


class TestSupabaseStore:
    """Tests for the REST store against a fake HTTP session."""

    def _store(self, session):
        config = SupabaseConfig(url="https://example.supabase.co/", anon_key="anon")
        return SupabaseStore(config, timezone=TZ, session=session)

    def test_fetch_appointments_filters_by_professional(self):
        session = FakeSession(FakeResponse([APPOINTMENT_ROW]))

        appointments = asyncio.run(self._store(session).fetch_appointments(1))

        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://example.supabase.co/rest/v1/appointments"
        assert call["params"]["professionalId"] == "eq.1"
        assert call["headers"]["apikey"] == "anon"
        assert appointments[0].start_time == pendulum.datetime(2030, 1, 1, 9, tz=TZ)

    def test_unreadable_rows_are_skipped(self):
        broken = dict(APPOINTMENT_ROW, id=11, startTime="not a date")
        session = FakeSession(FakeResponse([APPOINTMENT_ROW, broken]))

        appointments = asyncio.run(self._store(session).fetch_appointments(1))

        assert [a.id for a in appointments] == [10]

    def test_create_appointment_returns_stored_row(self):
        session = FakeSession(FakeResponse([APPOINTMENT_ROW], status_code=201))

        appointment = asyncio.run(self._store(session).create_appointment(_draft(9)))

        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["headers"]["Prefer"] == "return=representation"
        assert call["json"]["clientWhatsapp"] == "+5511988888888"
        assert call["json"]["startTime"].startswith("2030-01-01T12:00:00")
        assert appointment.id == 10

    def test_http_error_becomes_store_error(self):
        body = {"message": "permission denied for table appointments", "details": None, "hint": None}
        session = FakeSession(FakeResponse(body, status_code=403))

        with pytest.raises(StoreError, match="permission denied"):
            asyncio.run(self._store(session).fetch_appointments(1))

    def test_list_services_by_ids(self):
        rows = [{"id": 2, "name": "Barba", "duration": 30, "price": 50}]
        session = FakeSession(FakeResponse(rows))

        services = asyncio.run(self._store(session).list_services([2, 3]))

        assert session.calls[0]["params"]["id"] == "in.(2,3)"
        assert services[0].duration_minutes == 30
        assert asyncio.run(self._store(FakeSession()).list_services([])) == []


class TestOneSignalNotifier:
    """Push notifications only reach explicit recipients."""

    CONFIG = OneSignalConfig(app_id="app-123", api_key="rest-key")

    def test_permission_requires_a_recipient(self):
        assert asyncio.run(OneSignalNotifier(self.CONFIG).request_permission()) is PermissionState.DENIED
        assert asyncio.run(OneSignalNotifier(self.CONFIG, [None, ""]).request_permission()) is PermissionState.DENIED
        assert asyncio.run(OneSignalNotifier(OneSignalConfig(), ["auth-user-1"]).request_permission()) is PermissionState.DENIED
        assert asyncio.run(OneSignalNotifier(self.CONFIG, ["auth-user-1"]).request_permission()) is PermissionState.GRANTED

    def test_notification_targets_external_user_ids(self, monkeypatch):
        posted = []

        def fake_post(url, **kwargs):
            posted.append({"url": url, **kwargs})
            return FakeResponse({"id": "n-1"})

        monkeypatch.setattr("beautybook.adapters.onesignal_notifier.requests.post", fake_post)

        asyncio.run(OneSignalNotifier(self.CONFIG, ["auth-user-1"]).notify("Agendamento Confirmado", "Tudo certo"))

        payload = posted[0]["json"]
        assert payload["include_external_user_ids"] == ["auth-user-1"]
        assert "included_segments" not in payload
        assert posted[0]["headers"]["Authorization"] == "Basic rest-key"

    def test_notification_without_recipient_is_not_sent(self, monkeypatch):
        posted = []
        monkeypatch.setattr(
            "beautybook.adapters.onesignal_notifier.requests.post",
            lambda url, **kwargs: posted.append(kwargs),
        )

        with pytest.raises(RuntimeError, match="no recipient"):
            asyncio.run(OneSignalNotifier(self.CONFIG).notify("Agendamento Confirmado", "Tudo certo"))

        assert posted == []
