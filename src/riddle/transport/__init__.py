"""Endpoint pool and failover executor."""

from riddle.transport.executor import ResilientExecutor
from riddle.transport.pool import EndpointPool

__all__ = ["EndpointPool", "ResilientExecutor"]
