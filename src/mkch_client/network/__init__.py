"""Network reachability tracking."""

from .reachability import PathProbe, ReachabilityMonitor, ReachabilityState, SocketPathProbe

__all__ = ["PathProbe", "ReachabilityMonitor", "ReachabilityState", "SocketPathProbe"]
