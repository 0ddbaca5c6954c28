"""bot-matrix entrypoint: pairing daemon plus account-system HTTP API."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, Response

from matrix_pairing.application.ports.encryption_gateway_port import EncryptionGatewayPort
from matrix_pairing.application.ports.language_catalog_port import LanguageCatalogPort
from matrix_pairing.application.ports.room_binding_repository_port import (
    RoomBindingRepositoryPort,
)
from matrix_pairing.application.services.pairing_daemon import PairingDaemon
from matrix_pairing.config.settings import Settings, load_settings
from matrix_pairing.infrastructure.db.room_binding_repository import (
    SqlAlchemyRoomBindingRepository,
)
from matrix_pairing.infrastructure.db.session import create_session_factory
from matrix_pairing.infrastructure.http.auth_guard import ApiTokenGuard
from matrix_pairing.infrastructure.http.pairing_router import build_pairing_router
from matrix_pairing.infrastructure.i18n.language_catalog import (
    DEFAULT_LANG_DIR,
    JsonLanguageCatalog,
)
from matrix_pairing.infrastructure.logging import configure_logging
from matrix_pairing.infrastructure.markdown.renderer import MarkdownItRenderer
from matrix_pairing.infrastructure.matrix.encryption_gateway import (
    PlaintextOnlyEncryptionGateway,
)
from matrix_pairing.infrastructure.matrix.http_client import MatrixHttpClient

_SYNC_HTTP_TIMEOUT_BUFFER_SECONDS = 10.0
logger = logging.getLogger(__name__)
_shutdown_tasks: set[asyncio.Task[None]] = set()


@dataclass(frozen=True)
class BotMatrixRuntime:
    """Composed bot-matrix runtime dependencies."""

    settings: Settings
    matrix_client: MatrixHttpClient
    daemon: PairingDaemon
    app: FastAPI


def create_app(*, daemon: PairingDaemon, api_token: str) -> FastAPI:
    """Create FastAPI app exposing the daemon to the account system."""

    app = FastAPI(title="matrix-pairing-daemon")
    app.include_router(
        build_pairing_router(daemon=daemon, auth_guard=ApiTokenGuard(api_token=api_token))
    )

    @app.get("/health")
    async def health(response: Response) -> dict[str, object]:
        if not daemon.is_running:
            response.status_code = 503
        return {"ok": daemon.is_running}

    return app


def build_bot_matrix_runtime(
    *,
    settings: Settings | None = None,
    matrix_client: MatrixHttpClient | None = None,
    binding_repository: RoomBindingRepositoryPort | None = None,
    encryption_gateway: EncryptionGatewayPort | None = None,
    language_catalog: LanguageCatalogPort | None = None,
) -> BotMatrixRuntime:
    """Build runtime wiring for the pairing daemon and its API."""

    runtime_settings = settings or load_settings()
    runtime_matrix_client = matrix_client or MatrixHttpClient(
        homeserver_url=str(runtime_settings.matrix_homeserver_url),
        access_token=runtime_settings.matrix_access_token,
        timeout_seconds=(
            runtime_settings.matrix_sync_timeout_ms / 1000
            + _SYNC_HTTP_TIMEOUT_BUFFER_SECONDS
        ),
    )
    runtime_binding_repository = binding_repository or SqlAlchemyRoomBindingRepository(
        create_session_factory(runtime_settings.database_url)
    )
    runtime_language_catalog = language_catalog or JsonLanguageCatalog.from_directory(
        runtime_settings.lang_dir or DEFAULT_LANG_DIR
    )
    daemon = PairingDaemon(
        bot_user_id=runtime_settings.matrix_bot_user_id,
        transport=runtime_matrix_client,
        encryption_gateway=encryption_gateway or PlaintextOnlyEncryptionGateway(),
        binding_repository=runtime_binding_repository,
        language_catalog=runtime_language_catalog,
        markdown_renderer=MarkdownItRenderer(),
        room_topic=runtime_settings.matrix_room_topic,
        sync_timeout_ms=runtime_settings.matrix_sync_timeout_ms,
    )
    return BotMatrixRuntime(
        settings=runtime_settings,
        matrix_client=runtime_matrix_client,
        daemon=daemon,
        app=create_app(daemon=daemon, api_token=runtime_settings.pairing_api_token),
    )


async def ensure_access_token(*, settings: Settings, matrix_client: MatrixHttpClient) -> None:
    """Log in with username/password when no access token is configured."""

    if matrix_client.access_token:
        return
    assert settings.matrix_username is not None
    assert settings.matrix_password is not None
    result = await matrix_client.login(
        username=settings.matrix_username,
        password=settings.matrix_password,
        device_id=settings.matrix_device_id,
    )
    logger.info(
        "matrix_login_succeeded user_id=%s device_id=%s",
        result.user_id,
        result.device_id,
    )


def _schedule_shutdown(daemon: PairingDaemon) -> asyncio.Task[None]:
    """Start daemon shutdown from a callback, holding the task until it finishes."""

    task = asyncio.get_running_loop().create_task(daemon.shutdown())
    _shutdown_tasks.add(task)
    task.add_done_callback(_shutdown_tasks.discard)
    return task


async def run_bot_matrix(runtime: BotMatrixRuntime) -> bool:
    """Run daemon and API server until shutdown; return False after a fatal sync failure."""

    daemon = runtime.daemon
    server = uvicorn.Server(
        uvicorn.Config(
            runtime.app,
            host=runtime.settings.pairing_api_host,
            port=runtime.settings.pairing_api_port,
            log_config=None,
        )
    )
    server_task = asyncio.create_task(server.serve())
    server_task.add_done_callback(lambda _task: _schedule_shutdown(daemon))
    try:
        healthy = await daemon.run()
    finally:
        await daemon.shutdown()
        server.should_exit = True
        await server_task
    return healthy


async def _run_bot_matrix() -> bool:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "bot_matrix_starting sync_timeout_ms=%s api_host=%s api_port=%s",
        settings.matrix_sync_timeout_ms,
        settings.pairing_api_host,
        settings.pairing_api_port,
    )
    runtime = build_bot_matrix_runtime(settings=settings)
    await ensure_access_token(settings=settings, matrix_client=runtime.matrix_client)
    await runtime.daemon.load_room_state()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _schedule_shutdown, runtime.daemon)

    return await run_bot_matrix(runtime)


def main() -> None:
    """Run the pairing daemon; exit non-zero when the sync loop failed."""

    if not asyncio.run(_run_bot_matrix()):
        sys.exit(1)


if __name__ == "__main__":
    main()
