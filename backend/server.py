#!/usr/bin/env python3
"""
Control API server for the MEXC volatility trader.
Runs the trader in the background and exposes operator endpoints.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
import uvicorn

from config import BotConfig
from orchestrator import TradingOrchestrator, build_orchestrator
from routes import control_router
from routes.deps import resolve_api_key, set_state


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(log_dir: str = "logs") -> logging.Logger:
    """Setup comprehensive logging for audit trail"""
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Frame-level debug output from the socket library is too noisy
    logging.getLogger("websockets").setLevel(logging.INFO)

    # File handler - all logs
    file_handler = logging.FileHandler(
        f"{log_dir}/trader_{datetime.now().strftime('%Y%m%d')}.log"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    ))

    # Trade-specific log
    trade_handler = logging.FileHandler(
        f"{log_dir}/trades_{datetime.now().strftime('%Y%m%d')}.log"
    )
    trade_handler.setLevel(logging.INFO)
    trade_handler.addFilter(lambda record: record.name == "orders")
    trade_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(message)s'
    ))

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    ))

    root.addHandler(file_handler)
    root.addHandler(trade_handler)
    root.addHandler(console_handler)

    return root


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(
    orchestrator: Optional[TradingOrchestrator] = None,
    config: Optional[BotConfig] = None,
) -> FastAPI:
    """
    Build the control API.

    With an orchestrator given the app only routes to it (tests). Otherwise
    one is built from config on startup and stopped on shutdown.
    """
    config = config or (orchestrator.config if orchestrator else BotConfig.from_env())
    set_state("api_key", resolve_api_key(config.control_api_key))
    set_state("orchestrator", orchestrator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if orchestrator is None:
            owned = build_orchestrator(config)
            set_state("orchestrator", owned)
            await owned.start()
        try:
            yield
        finally:
            if owned is not None:
                await owned.stop()
                set_state("orchestrator", None)

    app = FastAPI(
        title="MEXC Volatility Trader API",
        description="Control and status for the single-pair volatility trader",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/")
    async def root():
        """Health check"""
        return {"status": "ok", "pair": config.pair, "timestamp": datetime.now().isoformat()}

    app.include_router(control_router)
    return app


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Run the server"""
    config = BotConfig.from_env()
    setup_logging(config.log_dir)
    uvicorn.run(
        create_app(config=config),
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )


if __name__ == "__main__":
    main()
