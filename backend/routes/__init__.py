"""
Route modules for the trader control API.

- control: trading on/off, orders, balances and status
"""

from .control import router as control_router

__all__ = [
    "control_router",
]
