"""Wires the store, the external clients and the integrations together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from voice_onboarding.config import AppConfig, missing_credentials
from voice_onboarding.errors import ConfigurationError
from voice_onboarding.integrations.bookings import BookingActions
from voice_onboarding.integrations.business_data import BusinessDataFetcher
from voice_onboarding.integrations.import_processor import ImportProcessor
from voice_onboarding.integrations.oauth_bridge import OAuthBridge
from voice_onboarding.integrations.onboarding import OnboardingCompleter
from voice_onboarding.services.credentials import CredentialResolver
from voice_onboarding.services.nango_client import NangoClient
from voice_onboarding.services.supabase_store import SupabaseStore, get_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: SupabaseStore
    credentials: CredentialResolver
    fetcher: BusinessDataFetcher
    bookings: BookingActions
    importer: ImportProcessor
    bridge: OAuthBridge
    onboarding: OnboardingCompleter


def assemble(store: SupabaseStore, nango: NangoClient, config: AppConfig) -> Services:
    credentials = CredentialResolver(store, nango, config.square)
    importer = ImportProcessor(store, credentials, config.square)
    return Services(
        store=store,
        credentials=credentials,
        fetcher=BusinessDataFetcher(store, credentials, config.square),
        bookings=BookingActions(store, credentials),
        importer=importer,
        bridge=OAuthBridge(store, nango, importer, webhook_secret=config.nango.webhook_secret),
        onboarding=OnboardingCompleter(store),
    )


def build_services(config: AppConfig) -> Services:
    """Production wiring; fails with ConfigurationError when credentials are unset."""
    missing = missing_credentials(config)
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        raise ConfigurationError("Missing required environment variables", details=missing)
    return assemble(get_store(config), NangoClient(config.nango), config)
