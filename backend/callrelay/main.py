import asyncio
import logging
from typing import Optional

from fastapi import FastAPI

from callrelay.api import health, webhook
from callrelay.core.config import Settings, get_settings
from callrelay.core.logging import configure_logging, install_failure_hooks
from callrelay.services.atz_client import AtzClient, AtzError
from callrelay.services.relay import CallRelay, ClientFactory

logger = logging.getLogger(__name__)


def log_configuration(settings: Settings) -> None:
    logger.info("Booting webhook…")
    logger.info("PORT = %s", settings.port)
    logger.info("ATZ_ENABLE = %s | ATZ_BASE_URL = %s", settings.atz_enable, settings.atz_base_url)
    logger.info("Log mode = %s", settings.atz_log_mode)
    logger.info("Custom field key = %s", settings.atz_custom_field_key or "(not set)")
    if settings.atz_owner_map:
        logger.info("Owner map covers extensions: %s", ", ".join(sorted(settings.atz_owner_map)))
    if settings.atz_enable and not settings.atz_api_token:
        logger.warning("ATZ_API_TOKEN not set; ATZ calls will be skipped.")


async def list_users_on_boot(settings: Settings, client_factory: ClientFactory) -> None:
    try:
        async with client_factory(settings) as client:
            users = await client.list_users()
    except AtzError as exc:
        logger.warning("Could not list ATZ users: %s", exc.body or exc)
        return
    logger.info("ATZ users (id → name):")
    for user in users:
        logger.info("   %s → %s", user.id, user.name)


def create_app(
    settings: Optional[Settings] = None,
    client_factory: ClientFactory = AtzClient.from_settings,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.relay = CallRelay(settings, client_factory)
    app.include_router(health.router)
    app.include_router(webhook.router)

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging(settings.log_level)
        install_failure_hooks(asyncio.get_running_loop())
        log_configuration(settings)
        if settings.atz_list_users_on_boot and settings.atz_ready:
            await list_users_on_boot(settings, client_factory)

    return app


app = create_app()
