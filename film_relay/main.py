import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from film_relay.config import Settings, load_settings
from film_relay.core.bootstrap import bootstrap_session
from film_relay.core.registry import ConnectionRegistry
from film_relay.core.signaling_router import SignalingRouter
from film_relay.core.store import StateStore, StoreError, create_store
from .routes.cameras import router as cameras_router
from .routes.health import router as health_router
from .routes.session import router as session_router
from .routes.signaling import router as signaling_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, store: Optional[StateStore] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = store or create_store(settings)
        app.state.registry = ConnectionRegistry()
        app.state.signaling_router = SignalingRouter(app.state.store, app.state.registry, settings)

        # Raises BootstrapError, which aborts startup before any connection is accepted.
        await bootstrap_session(
            app.state.store,
            attempts=settings.bootstrap_attempts,
            retry_delay=settings.bootstrap_retry_delay,
        )
        try:
            repaired = await app.state.signaling_router.reconcile_slots()
            if repaired:
                logger.info(f"🧹 Cleared stale cameras {repaired} from a previous run")
        except StoreError as e:
            logger.warning(f"⚠️ Slot reconciliation skipped: {e}")

        logger.info(f"🎬 Relay {settings.instance_id} ready, {settings.camera_slots} camera slots")
        logger.info(f"🔌 Cameras connect to {settings.public_protocol}://{settings.public_address}:{settings.public_port}/signaling")
        yield
        await app.state.store.close()

    app = FastAPI(title="Film Relay", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(signaling_router)
    app.include_router(session_router, prefix="/api")
    app.include_router(cameras_router, prefix="/api")
    app.include_router(health_router, prefix="/health")
    return app


def run():
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.relay_host, port=settings.relay_port)


if __name__ == "__main__":
    run()
