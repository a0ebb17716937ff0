"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import acreate_client

from kids_presence.adapters.supabase_change_feed import SupabaseChangeFeed
from kids_presence.adapters.supabase_child_repository import SupabaseChildRepository
from kids_presence.adapters.supabase_guardian_directory import (
    SupabaseGuardianDirectory,
)
from kids_presence.adapters.supabase_presence_repository import (
    SupabasePresenceRepository,
)
from kids_presence.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from kids_presence.config import Settings
from kids_presence.services.children import (
    ChildRepository,
    ChildService,
    GuardianDirectory,
)
from kids_presence.services.events import EventBus
from kids_presence.services.guardian import GuardianRequestGateway
from kids_presence.services.presence import PresenceRepository
from kids_presence.services.sessions import SessionManager, SessionRepository
from kids_presence.services.staff import StaffApprovalGateway
from kids_presence.services.sync import ChangeFeed, RealtimeSyncBridge


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    events: EventBus
    session_manager: SessionManager
    guardian_gateway: GuardianRequestGateway
    staff_gateway: StaffApprovalGateway
    child_service: ChildService
    sync_bridge: RealtimeSyncBridge
    close_resources: Callable[[], Awaitable[None]]


def assemble_container(  # noqa: PLR0913
    settings: Settings,
    *,
    presence_repository: PresenceRepository,
    session_repository: SessionRepository,
    child_repository: ChildRepository,
    guardian_directory: GuardianDirectory,
    change_feed: ChangeFeed,
) -> AppContainer:
    """Wire the services around the given persistence adapters."""
    events = EventBus()
    session_manager = SessionManager(
        repository=session_repository,
        timezone=settings.zone,
        name_prefix=settings.session_name_prefix,
    )
    guardian_gateway = GuardianRequestGateway(
        repository=presence_repository,
        children=child_repository,
        session_manager=session_manager,
        events=events,
        refresh_delay_seconds=settings.reconcile_delay_seconds,
        failure_delay_seconds=settings.failure_reconcile_delay_seconds,
    )
    staff_gateway = StaffApprovalGateway(
        repository=presence_repository,
        children=child_repository,
        guardians=guardian_directory,
        events=events,
        refresh_delay_seconds=settings.reconcile_delay_seconds,
        failure_delay_seconds=settings.failure_reconcile_delay_seconds,
    )
    child_service = ChildService(
        repository=child_repository,
        presence=presence_repository,
        board=guardian_gateway.board,
        events=events,
    )
    sync_bridge = RealtimeSyncBridge(
        feed=change_feed,
        views=[guardian_gateway.board, staff_gateway.board],
        refresh_delay_seconds=settings.feed_refresh_delay_seconds,
    )

    async def close_resources() -> None:
        await sync_bridge.stop()
        events.close()

    return AppContainer(
        settings=settings,
        events=events,
        session_manager=session_manager,
        guardian_gateway=guardian_gateway,
        staff_gateway=staff_gateway,
        child_service=child_service,
        sync_bridge=sync_bridge,
        close_resources=close_resources,
    )


async def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default Supabase-backed dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    return assemble_container(
        resolved_settings,
        presence_repository=SupabasePresenceRepository(supabase_client),
        session_repository=SupabaseSessionRepository(supabase_client),
        child_repository=SupabaseChildRepository(supabase_client),
        guardian_directory=SupabaseGuardianDirectory(supabase_client),
        change_feed=SupabaseChangeFeed(
            supabase_client, channel_name=resolved_settings.realtime_channel
        ),
    )
