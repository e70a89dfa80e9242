"""
PrivateSportShop stock monitor package.

This package polls the PrivateSportShop mobile API for tracked products,
detects sizes coming back in stock, reserves them by adding them to the
cart and alerts a Discord channel.  A small JSON control server manages
the tracked products at runtime.
"""

__all__ = [
    "client",
    "config",
    "control_server",
    "engine",
    "errors",
    "history",
    "live_config",
    "main",
    "models",
    "monitor",
    "notifier",
    "parser",
    "registry",
    "scheduler",
    "utils",
]
