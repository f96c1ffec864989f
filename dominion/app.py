"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from dominion.config import Config
from dominion.datasources import RpcDataSource, SolanaRpcDataSource
from dominion.stores import LedgerStore, LocalLedgerStore, SupabaseLedgerStore
from dominion.services import (
    AccountScanner,
    CleanupService,
    LeaderboardService,
    MetadataService,
    ProfileService,
    SubmissionPipeline,
    TransactionBuilder,
)
from dominion.api import router, leaderboard_router
from dominion.api.dependencies import set_services, set_wallet
from dominion.wallet import WalletAdapter, load_wallet

logger = logging.getLogger(__name__)


def create_app(
    config: Config | None = None,
    datasource: Optional[RpcDataSource] = None,
    hosted_store: Optional[LedgerStore] = None,
    local_store: Optional[LedgerStore] = None,
    wallet: Optional[WalletAdapter] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration. If None, loads from environment.
        datasource: RPC data source; built from ``config.rpc_url`` if None
        hosted_store: Hosted leaderboard store; built from the Supabase
            settings when they are configured
        local_store: Fallback leaderboard store
        wallet: Wallet for the action endpoints; loaded from config if None

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = Config.from_env()

    if datasource is None:
        datasource = SolanaRpcDataSource(rpc_url=config.rpc_url, commitment=config.commitment)
    if hosted_store is None and config.supabase_configured:
        hosted_store = SupabaseLedgerStore(config.supabase_url, config.supabase_anon_key)
    if local_store is None:
        local_store = LocalLedgerStore(config.local_ledger_path)
    if wallet is None:
        wallet = load_wallet(config)

    metadata = MetadataService(datasource)
    scanner = AccountScanner(datasource, metadata)
    builder = TransactionBuilder(datasource, config)
    pipeline = SubmissionPipeline(datasource, confirm_timeout=config.confirm_timeout)
    leaderboard = LeaderboardService(
        local=local_store,
        hosted=hosted_store,
        limit=config.leaderboard_limit,
    )
    cleanup = CleanupService(
        scanner,
        builder,
        pipeline,
        leaderboard,
        simulate=config.simulate_before_send,
    )
    profiles = ProfileService(leaderboard)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("Starting Rugal's Dominion API")
        logger.info(f"Using RPC endpoint: {config.rpc_url.split('?')[0]}")
        logger.info(f"Leaderboard store: {leaderboard.store.name}")
        if wallet is not None:
            await wallet.connect()
        else:
            logger.info("No wallet configured, action endpoints disabled")

        set_services(scanner, builder, cleanup, leaderboard, profiles)
        set_wallet(wallet)

        yield

        # Shutdown
        logger.info("Shutting down...")
        if wallet is not None:
            await wallet.disconnect()
        await metadata.close()
        await leaderboard.close()
        await datasource.close()

    app = FastAPI(
        title="Rugal's Dominion API",
        description="Reclaim rent from empty token accounts, burn tokens and NFTs, earn points",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include API routes
    app.include_router(leaderboard_router)
    app.include_router(router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "leaderboardStore": leaderboard.store.name,
            "walletConnected": wallet is not None and wallet.connected,
        }

    return app
