"""API routers."""

from . import ping, tickets, users

__all__ = ["ping", "tickets", "users"]
