"""Minecraft server watcher that reports player joins and leaves to a Telegram chat."""

__version__ = "1.0.0"
