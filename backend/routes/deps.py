"""
Shared dependencies for route modules.

This module provides access to global state and shared utilities.
"""

import logging
import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

logger = logging.getLogger(__name__)

# =============================================================================
# SECURITY: API Key Authentication
# =============================================================================

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def resolve_api_key(configured: Optional[str]) -> str:
    """Configured key, or a temporary one outside production"""
    if configured:
        return configured

    if os.getenv("ENV", "development").lower() == "production":
        raise RuntimeError("API_KEY environment variable not set")

    key = secrets.token_urlsafe(32)
    logger.warning(f"[Security] Generated temporary key: {key}")
    return key


def is_authorized(api_key: Optional[str]) -> bool:
    expected = _state["api_key"]
    return bool(api_key and expected and secrets.compare_digest(api_key, expected))


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """Verify API key for protected endpoints"""
    if not is_authorized(api_key):
        raise HTTPException(
            status_code=403,
            detail="Invalid or missing API key. Include X-API-Key header."
        )
    return api_key


# =============================================================================
# GLOBAL STATE ACCESSORS
# =============================================================================

# These will be set by server.py at startup
_state = {
    "orchestrator": None,
    "api_key": None,
}


def set_state(key: str, value):
    """Set a global state value (called from server.py)"""
    _state[key] = value


def get_orchestrator():
    orchestrator = _state["orchestrator"]
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Trader not running")
    return orchestrator
