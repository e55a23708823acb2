"""Shared DTOs and type definitions used across services.

Only lightweight, common data models should live here. Do not place
transport logic or heavy dependencies (e.g., aiortc) in this package.
"""

from .dto import ChatMessage, Notification, RoomInfo

__all__ = [
    "ChatMessage",
    "Notification",
    "RoomInfo",
]
