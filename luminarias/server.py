"""
server.py - Luminarias ledger server entry point.

Single-process server combining:
 - SQLite persistent storage via StorageManager
 - Ledger core and the workflows built on it (transfer, escrow,
   conversion, withdrawal, store, stats)
 - REST API (FastAPI on uvicorn, port 8080)

Usage:
    python -m luminarias.server [--api-port 8080] [--db-path data/luminarias.db]
"""

import argparse
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from luminarias import __version__
from luminarias.auth import AuthService
from luminarias.config import LedgerConfig
from luminarias.conversion import ConversionWorkflow
from luminarias.deps import INDETERMINATE_DETAIL, status_for
from luminarias.errors import Indeterminate, LedgerError
from luminarias.escrow import EscrowService
from luminarias.ledger import Ledger
from luminarias.routers import register_all_routers
from luminarias.stats import StatsService
from luminarias.storage import StorageManager
from luminarias.store import StoreService
from luminarias.transfer import TransferService
from luminarias.withdrawal import WithdrawalWorkflow

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("server")


class LedgerServer:
    """Owns storage, the ledger, every workflow service and the FastAPI app."""

    def __init__(
        self,
        api_port: int = 8080,
        db_path: str = "data/luminarias.db",
        config: Optional[LedgerConfig] = None,
    ):
        self.api_port = api_port
        self.db_path = db_path
        self.config = config or LedgerConfig()

        # Storage + services are initialized async on startup
        self.storage: Optional[StorageManager] = None
        self.ledger: Optional[Ledger] = None
        self.transfers: Optional[TransferService] = None
        self.escrow: Optional[EscrowService] = None
        self.conversions: Optional[ConversionWorkflow] = None
        self.withdrawals: Optional[WithdrawalWorkflow] = None
        self.store: Optional[StoreService] = None
        self.stats: Optional[StatsService] = None
        self.auth: Optional[AuthService] = None

        self.app = FastAPI(title="Luminarias Ledger", version=__version__, lifespan=self._lifespan)
        self.app.state.server = self
        self.app.add_exception_handler(LedgerError, self._ledger_error)
        self._register_routes()

    async def _init_services(self):
        """Initialize storage and wire up services (must be called in async context)."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.storage = StorageManager(self.db_path)
        await self.storage.initialize()

        self.ledger = Ledger(self.storage, self.config)
        self.transfers = TransferService(self.ledger)
        self.escrow = EscrowService(self.ledger)
        self.conversions = ConversionWorkflow(self.ledger)
        self.withdrawals = WithdrawalWorkflow(self.ledger)
        self.store = StoreService(self.ledger)
        self.stats = StatsService(self.storage)
        self.auth = AuthService(self.ledger)

        if self.config.record_platform_commission:
            await self.ledger.open_account(self.config.platform_user_id, starting_grant=0)

        logger.info("Services initialized (db=%s)", self.db_path)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self._init_services()
        try:
            yield
        finally:
            await self.storage.close()

    # -------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------

    async def _ledger_error(self, request: Request, exc: LedgerError):
        status = status_for(exc)
        detail = INDETERMINATE_DETAIL if isinstance(exc, Indeterminate) else exc.message
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content={"detail": detail, "code": exc.code})

    # -------------------------------------------------------------------
    # FastAPI routes
    # -------------------------------------------------------------------

    def _register_routes(self):
        app = self.app

        @app.get("/")
        async def root():
            return {
                "service": "Luminarias Ledger",
                "version": __version__,
                "api_port": self.api_port,
            }

        register_all_routers(app)

    async def start(self):
        """Start the API server; storage comes up in the app lifespan."""
        config = uvicorn.Config(
            self.app,
            host="0.0.0.0",
            port=self.api_port,
            log_level="info",
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.api_port)
        await self._uvicorn_server.serve()


def main():
    """CLI entry point for the ledger server."""
    defaults = LedgerConfig()
    parser = argparse.ArgumentParser(description="Luminarias Ledger Server")
    parser.add_argument("--api-port", type=int, default=8080, help="REST API port (default: 8080)")
    parser.add_argument("--db-path", default="data/luminarias.db", help="SQLite database path (default: data/luminarias.db)")
    parser.add_argument("--admin-key", default=defaults.admin_key, help="X-API-Key value granting super_admin")
    parser.add_argument("--jwt-secret", default="", help="HS256 secret for issued JWTs (default: random per process)")
    parser.add_argument("--starting-grant", type=int, default=defaults.starting_grant,
                        help=f"Luminarias credited on registration (default: {defaults.starting_grant})")
    parser.add_argument("--record-platform-commission", action="store_true",
                        help="Credit marketplace commission to the platform treasury account")
    args = parser.parse_args()

    config = LedgerConfig(
        starting_grant=args.starting_grant,
        record_platform_commission=args.record_platform_commission,
        admin_key=args.admin_key,
        jwt_secret=args.jwt_secret,
    )
    server = LedgerServer(api_port=args.api_port, db_path=args.db_path, config=config)

    logger.info("=" * 60)
    logger.info("  Luminarias Ledger Server")
    logger.info("  REST API:    http://localhost:%d", args.api_port)
    logger.info("  Database:    %s", args.db_path)
    logger.info("  Grant:       %d Luminarias", args.starting_grant)
    logger.info("  Commission:  %s", "recorded" if args.record_platform_commission else "implicit")
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
