"""AI-assisted anti-spam moderator for Telegram group chats."""

__version__ = "0.3.0"

__all__ = ["__version__"]
