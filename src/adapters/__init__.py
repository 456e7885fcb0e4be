"""Adapters binding the core ports to Telegram (Telethon) and SQLite."""
