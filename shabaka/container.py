"""Composition root.

Builds every repository, gateway and service once, with explicit
constructor arguments.  Postgres repositories are used when
DATABASE_URL is set and Redis-backed blacklist, cache and queue when
REDIS_URL is set; otherwise everything lives in process memory.

Routers never import services directly.  They depend on the ``get_*``
provider functions below, and tests swap the whole graph with
``set_container(build_container(...))``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from shabaka.core.config import SETTINGS, Settings
from shabaka.db.engine import async_session_factory
from shabaka.db.redis import redis_pool
from shabaka.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from shabaka.repos.order_repo import InMemoryOrderRepo, OrderRepo
from shabaka.repos.progress_repo import (
    ContentProgressRepo,
    InMemoryContentProgressRepo,
    InMemoryTrackingActionRepo,
    TrackingActionRepo,
)
from shabaka.repos.promo_repo import InMemoryPromoCodeRepo, PromoCodeRepo
from shabaka.repos.user_repo import InMemoryUserRepo, UserRepo
from shabaka.repos.verification_code_repo import (
    InMemoryVerificationCodeRepo,
    VerificationCodeRepo,
)
from shabaka.services.access_service import AccessService
from shabaka.services.auth_service import AuthService
from shabaka.services.cache import CacheService, InMemoryCacheService, RedisCacheService
from shabaka.services.challenge_service import ChallengeService
from shabaka.services.content_tracking import ContentTrackingService
from shabaka.services.fee_service import FeeService
from shabaka.services.gateways.base import RedirectGateway
from shabaka.services.gateways.flouci import FlouciGateway
from shabaka.services.gateways.stripe_link import StripeLinkGateway
from shabaka.services.payment_service import PaymentService
from shabaka.services.progression_service import ProgressionService
from shabaka.services.promo_service import PromoService
from shabaka.services.task_queue import InMemoryTaskQueue, RedisTaskQueue, TaskQueue
from shabaka.services.token_blacklist import (
    InMemoryTokenBlacklist,
    RedisTokenBlacklist,
    TokenBlacklist,
)

logger = logging.getLogger(__name__)


@dataclass
class Container:
    users: UserRepo
    codes: VerificationCodeRepo
    orders: OrderRepo
    promo_codes: PromoCodeRepo
    progress: ContentProgressRepo
    actions: TrackingActionRepo
    catalog: CatalogRepo
    blacklist: TokenBlacklist
    cache: CacheService
    notifications: TaskQueue
    flouci: RedirectGateway
    stripe_link: StripeLinkGateway
    auth: AuthService
    tracking: ContentTrackingService
    progression: ProgressionService
    challenges: ChallengeService
    promos: PromoService
    fees: FeeService
    access: AccessService
    payments: PaymentService


def _build_repos(use_db: bool):
    if use_db and async_session_factory is not None:
        from shabaka.repos.pg_catalog_repo import PgCatalogRepo
        from shabaka.repos.pg_order_repo import PgOrderRepo
        from shabaka.repos.pg_progress_repo import PgContentProgressRepo, PgTrackingActionRepo
        from shabaka.repos.pg_promo_repo import PgPromoCodeRepo
        from shabaka.repos.pg_user_repo import PgUserRepo
        from shabaka.repos.pg_verification_code_repo import PgVerificationCodeRepo

        sessions = async_session_factory
        return (
            PgUserRepo(sessions),
            PgVerificationCodeRepo(sessions),
            PgOrderRepo(sessions),
            PgPromoCodeRepo(sessions),
            PgContentProgressRepo(sessions),
            PgTrackingActionRepo(sessions),
            PgCatalogRepo(sessions),
        )
    return (
        InMemoryUserRepo(),
        InMemoryVerificationCodeRepo(),
        InMemoryOrderRepo(),
        InMemoryPromoCodeRepo(),
        InMemoryContentProgressRepo(),
        InMemoryTrackingActionRepo(),
        InMemoryCatalogRepo(),
    )


def build_container(
    settings: Settings = SETTINGS,
    *,
    use_external: bool = True,
    payment_mode: Literal["instant", "offline"] | None = None,
    flouci: RedirectGateway | None = None,
    stripe_link: StripeLinkGateway | None = None,
    flouci_webhook_secret: str | None = None,
    catalog: CatalogRepo | None = None,
) -> Container:
    """Assemble the object graph.

    ``use_external=False`` forces in-memory storage even when DATABASE_URL
    or REDIS_URL are set.  The keyword overrides replace single pieces.
    """
    users, codes, orders, promo_codes, progress, actions, stored_catalog = _build_repos(
        use_external
    )

    redis = redis_pool if use_external else None
    if redis is not None:
        blacklist: TokenBlacklist = RedisTokenBlacklist(redis)
        cache: CacheService = RedisCacheService(redis)
        notifications: TaskQueue = RedisTaskQueue(redis)
    else:
        blacklist = InMemoryTokenBlacklist()
        cache = InMemoryCacheService()
        notifications = InMemoryTaskQueue()

    catalog = catalog or stored_catalog
    flouci = flouci or FlouciGateway(
        app_token=settings.flouci_app_token,
        app_secret=settings.flouci_app_secret,
        developer_tracking_id=settings.flouci_developer_tracking_id,
    )
    stripe_link = stripe_link or StripeLinkGateway(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )

    challenges = ChallengeService(catalog)
    promos = PromoService(promo_codes)
    fees = FeeService(catalog)
    access = AccessService(catalog, challenges)
    payments = PaymentService(
        orders=orders,
        catalog=catalog,
        fees=fees,
        promos=promos,
        access=access,
        flouci=flouci,
        stripe_link=stripe_link,
        notifications=notifications,
        payment_mode=payment_mode or settings.payment_mode,
        frontend_url=settings.frontend_url,
        flouci_webhook_secret=(
            flouci_webhook_secret
            if flouci_webhook_secret is not None
            else settings.flouci_webhook_secret
        ),
    )

    return Container(
        users=users,
        codes=codes,
        orders=orders,
        promo_codes=promo_codes,
        progress=progress,
        actions=actions,
        catalog=catalog,
        blacklist=blacklist,
        cache=cache,
        notifications=notifications,
        flouci=flouci,
        stripe_link=stripe_link,
        auth=AuthService(
            users=users, codes=codes, blacklist=blacklist, notifications=notifications
        ),
        tracking=ContentTrackingService(progress, actions, cache),
        progression=ProgressionService(progress, catalog, cache),
        challenges=challenges,
        promos=promos,
        fees=fees,
        access=access,
        payments=payments,
    )


_container: Container | None = None


def get_container() -> Container:
    global _container
    if _container is None:
        _container = build_container()
        logger.info(
            "Container built (db=%s, redis=%s, payment_mode=%s)",
            async_session_factory is not None,
            redis_pool is not None,
            SETTINGS.payment_mode,
        )
    return _container


def set_container(container: Container | None) -> None:
    """Install ``container`` (None rebuilds lazily on next use)."""
    global _container
    _container = container


# --- FastAPI providers ---


def get_auth_service() -> AuthService:
    return get_container().auth


def get_token_blacklist() -> TokenBlacklist:
    return get_container().blacklist


def get_user_repo() -> UserRepo:
    return get_container().users


def get_payment_service() -> PaymentService:
    return get_container().payments


def get_tracking_service() -> ContentTrackingService:
    return get_container().tracking


def get_progression_service() -> ProgressionService:
    return get_container().progression


def get_challenge_service() -> ChallengeService:
    return get_container().challenges


def get_notification_queue() -> TaskQueue:
    return get_container().notifications
