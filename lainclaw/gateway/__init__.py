"""Gateway core and its HTTP bridge."""

from lainclaw.gateway.core import GatewayCore
from lainclaw.gateway.server import GatewayServer

__all__ = ["GatewayCore", "GatewayServer"]
