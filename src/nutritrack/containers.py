"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutritrack.adapters.health_store_client import HealthStore, HttpxHealthStoreClient
from nutritrack.adapters.memory_local_store import InMemoryLocalStore
from nutritrack.adapters.remote_store_client import HttpxRemoteStoreClient, RemoteStore
from nutritrack.adapters.supabase_phase_repository import SupabasePhaseRepository
from nutritrack.config import Settings
from nutritrack.services.cache import InMemoryCache
from nutritrack.services.catalog import CatalogService
from nutritrack.services.phases import HealthAuthorizationService
from nutritrack.services.profile import HealthProfileService
from nutritrack.services.propagation import ConsumptionLogService
from nutritrack.services.reconciler import CacheReconciler
from nutritrack.services.recommendations import RecommendationService
from nutritrack.services.resolver import CompositionResolver
from nutritrack.services.sessions import AuthSession
from nutritrack.services.stats import NutritionSummaryService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session: AuthSession
    remote_store: RemoteStore
    health_store: HealthStore
    reconciler: CacheReconciler
    catalog_service: CatalogService
    authorization_service: HealthAuthorizationService
    consumption_log_service: ConsumptionLogService
    recommendation_service: RecommendationService
    summary_service: NutritionSummaryService
    profile_service: HealthProfileService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session = AuthSession(token=resolved_settings.remote_api_token)
    remote_store = HttpxRemoteStoreClient.create(
        base_url=resolved_settings.remote_api_base_url,
        session=session,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )
    health_store = HttpxHealthStoreClient.create(
        base_url=resolved_settings.health_store_base_url,
        token=resolved_settings.health_store_token,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )
    reconciler = CacheReconciler(InMemoryLocalStore())
    resolver = CompositionResolver()
    catalog_service = CatalogService(
        remote_store=remote_store,
        reconciler=reconciler,
        cache=InMemoryCache(),
        ttl_seconds=resolved_settings.catalog_ttl_seconds,
    )
    authorization_service = HealthAuthorizationService(
        repository=SupabasePhaseRepository(supabase_client),
        health_store=health_store,
        profile_id=resolved_settings.profile_id,
        enhanced_suggestion_days=resolved_settings.enhanced_suggestion_days,
        comprehensive_suggestion_days=resolved_settings.comprehensive_suggestion_days,
    )
    consumption_log_service = ConsumptionLogService(
        remote_store=remote_store,
        reconciler=reconciler,
        catalog_service=catalog_service,
        resolver=resolver,
        authorization_service=authorization_service,
        health_store=health_store,
        session=session,
    )
    recommendation_service = RecommendationService(
        remote_store=remote_store,
        default_window_days=resolved_settings.recommendation_window_days,
        default_limit=resolved_settings.recommendation_limit,
    )
    summary_service = NutritionSummaryService(
        remote_store=remote_store,
        catalog_service=catalog_service,
        resolver=resolver,
    )
    profile_service = HealthProfileService(
        health_store=health_store,
        authorization_service=authorization_service,
    )

    async def close_resources() -> None:
        await remote_store.close()
        await health_store.close()

    return AppContainer(
        settings=resolved_settings,
        session=session,
        remote_store=remote_store,
        health_store=health_store,
        reconciler=reconciler,
        catalog_service=catalog_service,
        authorization_service=authorization_service,
        consumption_log_service=consumption_log_service,
        recommendation_service=recommendation_service,
        summary_service=summary_service,
        profile_service=profile_service,
        close_resources=close_resources,
    )
