"""Core domain package for transcribot.

Core contains rule matching, command routing, and reply lifecycle logic
without any Telegram or storage-specific code, keeping the business logic
portable.
"""
