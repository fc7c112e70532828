"""vm-relay package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "hypervisor",
    "models",
    "monitor",
    "relay",
    "socket_provider",
    "tunnel",
    "utils",
]
