# Tiered Vault API - FastAPI application
#
# create_app() builds one app around one VaultManager (kept on app.state).
# Bind to localhost only: the session token is the only gate.

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core import AuditLogger, EventSeverity, EventType, VaultConfig
from ..vault import VaultManager
from .security import get_session_token, initialize_session_token
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)

# Local frontends only
_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]


def create_app(
    config: Optional[VaultConfig] = None,
    manager: Optional[VaultManager] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Vault configuration (default: VaultConfig.from_env())
        manager: Pre-built manager (tests); overrides ``config``
    """
    if manager is None:
        config = config or VaultConfig.from_env()
        manager = VaultManager(config, audit_logger=AuditLogger(config.audit_log_dir))

    app = FastAPI(
        title="Tiered Vault API",
        description="Privacy-tiered personal secrets vault",
        version=__version__,
    )
    app.state.vault_manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(vault_router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize the session token on startup."""
        initialize_session_token(app)
        manager.logger.log_event(
            event_type=EventType.SYSTEM_START,
            severity=EventSeverity.INFO,
            message="Tiered Vault API server starting (session token initialized)",
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Lock the vault and release store connections."""
        manager.lock()
        await manager.store.close()
        manager.logger.log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Tiered Vault API server shutting down",
        )

    @app.get("/api/session")
    async def get_session():
        """
        Get session token for API authentication.

        Unprotected because the frontend needs the token to authenticate.
        The token is random (256 bits), changes on every restart, and the
        server only listens on localhost.
        """
        return {"session_token": get_session_token(app)}

    @app.get("/api")
    async def api_info():
        return {
            "name": "Tiered Vault API",
            "version": __version__,
            "remote_backend": manager.store.name,
        }

    return app


def start_api_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start FastAPI server.

    Args:
        host: Host to bind to (default: localhost only for security)
        port: Port to listen on
    """
    app = create_app()
    logger.info("Starting Tiered Vault API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")
