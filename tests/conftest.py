"""Shared test fixtures and in-memory stand-ins for Supabase, Nango and Square."""

from typing import Any, Optional

import pytest

from voice_onboarding.config import SquareConfig
from voice_onboarding.errors import BookingConflictError, NangoAPIError, SquareAPIError
from voice_onboarding.integrations.bookings import BookingActions
from voice_onboarding.integrations.business_data import BusinessDataFetcher, build_snapshot
from voice_onboarding.integrations.import_processor import ImportProcessor
from voice_onboarding.integrations.oauth_bridge import OAuthBridge
from voice_onboarding.integrations.onboarding import OnboardingCompleter
from voice_onboarding.schemas.connection_schema import (
    Connection,
    ConnectionStatus,
    ImportTask,
    Integration,
    TaskStatus,
    TASK_ORDER,
)
from voice_onboarding.services.container import Services
from voice_onboarding.services.credentials import CredentialResolver
from voice_onboarding.utils import parse_iso

OWNER_ID = "owner-1"
OWNER_TOKEN = "good-token"
SQUARE_INTEGRATION_ID = "int-square"
CONNECTION_ID = "conn-1"

SALON_LOCATIONS = [
    {
        "id": "L1",
        "name": "Main Salon",
        "business_name": "Main Salon Co",
        "status": "ACTIVE",
        "address": {
            "address_line_1": "1 High Street",
            "locality": "Springfield",
            "administrative_district_level_1": "IL",
            "postal_code": "62701",
            "country": "US",
        },
        "phone_number": "+1 217-555-0100",
        "business_hours": {
            "periods": [
                {"day_of_week": "MON", "start_local_time": "09:00", "end_local_time": "17:00"},
                {"day_of_week": "SAT", "start_local_time": "10:00", "end_local_time": "14:00"},
            ]
        },
        "timezone": "UTC",
    }
]

SALON_CATALOG = [
    {"type": "CATEGORY", "id": "C1", "category_data": {"name": "Hair"}},
    {
        "type": "ITEM",
        "id": "I1",
        "item_data": {
            "name": "Haircut",
            "description": "Wash and cut",
            "categories": [{"id": "C1"}],
            "variations": [
                {
                    "type": "ITEM_VARIATION",
                    "id": "V1",
                    "version": 7,
                    "item_variation_data": {
                        "item_id": "I1",
                        "name": "Standard",
                        "service_duration": 1800000,
                        "available_for_booking": True,
                        "pricing_type": "FIXED_PRICING",
                        "price_money": {"amount": 3000, "currency": "USD"},
                    },
                }
            ],
        },
    },
    {"type": "ITEM", "id": "I2", "item_data": {"name": "Shampoo", "category_id": "C1"}},
    {
        "type": "ITEM_VARIATION",
        "id": "V2",
        "item_variation_data": {
            "item_id": "I2",
            "name": "Bottle",
            "pricing_type": "FIXED_PRICING",
            "price_money": {"amount": 1500, "currency": "USD"},
        },
    },
]


def availability(start_at: str, team_member_id: str = "TM1") -> dict:
    return {
        "start_at": start_at,
        "location_id": "L1",
        "appointment_segments": [
            {
                "duration_minutes": 30,
                "service_variation_id": "V1",
                "team_member_id": team_member_id,
                "service_variation_version": 7,
            }
        ],
    }


class FakeStore:
    """In-memory replacement for SupabaseStore."""

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.integrations: dict[str, Integration] = {}
        self.connections: list[Connection] = []
        self.profiles: dict[str, dict] = {}
        self.conversations: dict[str, str] = {}
        self.messages: list[dict] = []
        self.tasks: dict[str, ImportTask] = {}
        self.onboarding: dict[str, dict] = {}
        self.synced: list[tuple[str, str]] = []

    # seeding helpers
    def add_user(self, user_id: str, email: str, full_name: Optional[str] = None,
                 token: Optional[str] = None) -> None:
        self.users[user_id] = {"id": user_id, "email": email, "full_name": full_name}
        if token:
            self.tokens[token] = user_id

    def add_integration(self, integration_id: str, key: str, name: str = "Square") -> None:
        self.integrations[integration_id] = Integration(
            id=integration_id, ext_integration_id=key, name=name,
            description=f"{name} POS", category="payments",
        )

    # users
    def get_user(self, user_id: str) -> Optional[dict]:
        return self.users.get(user_id)

    def get_user_from_token(self, token: str) -> Optional[dict]:
        user_id = self.tokens.get(token)
        return self.users.get(user_id) if user_id else None

    # integrations and connections
    def get_integration(self, integration_id: str) -> Optional[Integration]:
        return self.integrations.get(integration_id)

    def get_integration_by_key(self, key: str) -> Optional[Integration]:
        for integration in self.integrations.values():
            if integration.ext_integration_id == key:
                return integration
        return None

    def upsert_connection(self, connection: Connection) -> Connection:
        for i, existing in enumerate(self.connections):
            if (existing.user_id, existing.integration_id) == (
                connection.user_id, connection.integration_id
            ):
                self.connections[i] = connection
                return connection
        self.connections.append(connection)
        return connection

    def get_active_connection(self, user_id: str, keys) -> Optional[Connection]:
        keys = set(keys)
        ids = {i.id for i in self.integrations.values() if i.ext_integration_id in keys}
        for connection in reversed(self.connections):
            if (connection.user_id == user_id and connection.integration_id in ids
                    and connection.status == ConnectionStatus.ACTIVE):
                return connection
        return None

    def touch_connection_sync(self, user_id: str, connection_id: str) -> None:
        self.synced.append((user_id, connection_id))

    # business data
    def update_business_data(self, user_id: str, business_data: dict) -> None:
        self.profiles[user_id] = business_data

    def get_business_data(self, user_id: str) -> Optional[dict]:
        return self.profiles.get(user_id)

    # chat
    def get_onboarding_conversation(self, user_id: str) -> Optional[str]:
        return self.conversations.get(user_id)

    def append_message(self, conversation_id: str, role: str, content: str) -> int:
        order = len([m for m in self.messages if m["conversation_id"] == conversation_id]) + 1
        self.messages.append({
            "conversation_id": conversation_id, "role": role,
            "content": content, "message_order": order,
        })
        return order

    # import tasks
    def create_import_tasks(self, user_id: str, connection_id: str,
                            max_retries: int = 3) -> list[ImportTask]:
        created = []
        for task_type in TASK_ORDER:
            existing = next(
                (t for t in self.tasks.values()
                 if (t.user_id, t.connection_id, t.task_type) == (user_id, connection_id, task_type)),
                None,
            )
            task_id = existing.id if existing else f"task-{len(self.tasks) + 1}"
            task = ImportTask(
                id=task_id, user_id=user_id, connection_id=connection_id,
                task_type=task_type, max_retries=max_retries,
            )
            self.tasks[task_id] = task
            created.append(task)
        return created

    def get_task(self, task_id: str) -> Optional[ImportTask]:
        return self.tasks.get(task_id)

    def list_pending_tasks(self, user_id: Optional[str] = None) -> list[ImportTask]:
        return [
            t for t in self.tasks.values()
            if t.status in (TaskStatus.PENDING, TaskStatus.RETRYING)
            and (user_id is None or t.user_id == user_id)
        ]

    def update_task(self, task_id: str, **fields: Any) -> None:
        self.tasks[task_id] = self.tasks[task_id].model_copy(update=fields)

    def get_onboarding(self, user_id: str) -> Optional[dict]:
        return self.onboarding.get(user_id)

    def upsert_onboarding(self, user_id: str, fields: dict) -> None:
        self.onboarding[user_id] = {**self.onboarding.get(user_id, {}), **fields}


class FakeNango:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail: Optional[str] = None
        self.token = "square-access-token"

    async def create_connect_session(self, end_user_id, email, display_name, allowed_integrations):
        self.calls.append(("create_connect_session", end_user_id, email, display_name,
                           allowed_integrations))
        if self.fail:
            raise NangoAPIError(self.fail, status=400)
        return {"token": "session-token", "expires_at": "2030-01-01T00:00:00Z"}

    async def get_access_token(self, connection_id, provider_config_key):
        self.calls.append(("get_access_token", connection_id, provider_config_key))
        if self.fail:
            raise NangoAPIError(self.fail, status=404)
        return self.token


class FakeSquare:
    """In-memory Square with version-checked booking updates."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.merchants = [{"id": "M1", "business_name": "Main Salon Co"}]
        self.locations: list[dict] = [dict(loc) for loc in SALON_LOCATIONS]
        self.catalog: list[dict] = list(SALON_CATALOG)
        self.availabilities: list[dict] = []
        self.bookings: dict[str, dict] = {}
        self.customers: list[dict] = []
        self.page_size = 2
        self.closed = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        self.closed += 1

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise SquareAPIError(
                f"{name} failed", status=500,
                errors=[{"code": "INTERNAL_SERVER_ERROR", "detail": f"{name} failed"}],
            )

    async def list_merchants(self):
        self._record("list_merchants")
        return self.merchants

    async def list_locations(self):
        self._record("list_locations")
        return self.locations

    async def list_catalog(self, types: str = ""):
        self._record("list_catalog")
        return self.catalog

    async def search_availability(self, start_at_min, start_at_max, location_id=None,
                                  segment_filters=None):
        self._record("search_availability", start_at_min, start_at_max, location_id,
                     segment_filters)
        lo, hi = parse_iso(start_at_min), parse_iso(start_at_max)
        return [
            dict(a) for a in self.availabilities
            if lo <= parse_iso(a["start_at"]) <= hi
        ]

    async def create_booking(self, booking):
        self._record("create_booking", booking)
        booking_id = f"BK{len(self.bookings) + 1}"
        stored = {**booking, "id": booking_id, "version": 0, "status": "ACCEPTED"}
        self.bookings[booking_id] = stored
        return dict(stored)

    def _current(self, booking_id):
        if booking_id not in self.bookings:
            raise SquareAPIError("Booking not found", status=404, errors=[{"code": "NOT_FOUND"}])
        return self.bookings[booking_id]

    async def get_booking(self, booking_id):
        self._record("get_booking", booking_id)
        return dict(self._current(booking_id))

    async def update_booking(self, booking_id, booking, version):
        self._record("update_booking", booking_id, booking, version)
        current = self._current(booking_id)
        if version != current["version"]:
            raise BookingConflictError(
                "Booking version mismatch", status=409, errors=[{"code": "VERSION_MISMATCH"}]
            )
        self.bookings[booking_id] = {**current, **booking, "version": current["version"] + 1}
        return dict(self.bookings[booking_id])

    async def cancel_booking(self, booking_id, version):
        self._record("cancel_booking", booking_id, version)
        current = self._current(booking_id)
        if version != current["version"]:
            raise BookingConflictError(
                "Booking version mismatch", status=409, errors=[{"code": "VERSION_MISMATCH"}]
            )
        self.bookings[booking_id] = {
            **current, "status": "CANCELLED_BY_SELLER", "version": current["version"] + 1,
        }
        return dict(self.bookings[booking_id])

    async def list_bookings(self, limit=None, cursor=None, **filters):
        self._record("list_bookings", limit, cursor)
        ordered = sorted(self.bookings.values(), key=lambda b: b["start_at"])
        start = int(cursor or 0)
        size = limit or self.page_size
        end = start + size
        return {
            "bookings": [dict(b) for b in ordered[start:end]],
            "cursor": str(end) if end < len(ordered) else None,
        }

    async def iter_bookings(self, **filters):
        cursor = None
        while True:
            page = await self.list_bookings(cursor=cursor, **filters)
            for booking in page["bookings"]:
                yield booking
            cursor = page["cursor"]
            if not cursor:
                return

    async def search_customers_by_phone(self, phone):
        self._record("search_customers_by_phone", phone)
        return [c for c in self.customers if c.get("phone_number") == phone]


def make_services(store, nango, square, square_config=None, webhook_secret="") -> Services:
    square_config = square_config or SquareConfig(environment="SANDBOX", test_mode=False)
    credentials = CredentialResolver(
        store, nango, square_config, square_factory=lambda token: square
    )
    importer = ImportProcessor(store, credentials, square_config)
    return Services(
        store=store,
        credentials=credentials,
        fetcher=BusinessDataFetcher(store, credentials, square_config),
        bookings=BookingActions(store, credentials),
        importer=importer,
        bridge=OAuthBridge(store, nango, importer, webhook_secret=webhook_secret),
        onboarding=OnboardingCompleter(store),
    )


def connect_owner(store: FakeStore) -> None:
    """Give the owner an active Square connection and a synced snapshot."""
    store.upsert_connection(Connection(
        user_id=OWNER_ID, integration_id=SQUARE_INTEGRATION_ID,
        connection_id=CONNECTION_ID, status=ConnectionStatus.ACTIVE,
    ))
    snapshot = build_snapshot(SALON_LOCATIONS, SALON_CATALOG)
    store.update_business_data(OWNER_ID, snapshot.model_dump(mode="json"))


@pytest.fixture
def store():
    fake = FakeStore()
    fake.add_user(OWNER_ID, "owner@example.com", full_name="Olive Owner", token=OWNER_TOKEN)
    fake.add_integration(SQUARE_INTEGRATION_ID, "squareup-sandbox")
    fake.conversations[OWNER_ID] = "conv-1"
    return fake


@pytest.fixture
def nango():
    return FakeNango()


@pytest.fixture
def square():
    return FakeSquare()


@pytest.fixture
def services(store, nango, square):
    return make_services(store, nango, square)


@pytest.fixture
def ready_services(services, store):
    connect_owner(store)
    return services
