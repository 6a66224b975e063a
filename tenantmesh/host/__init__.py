"""Host environment consumed by contract methods."""

from tenantmesh.host.environment import HostEnvironment, InvocationContext, MonotonicClock

__all__ = ["HostEnvironment", "InvocationContext", "MonotonicClock"]
