"""Forward device notifications to webhooks, filtered by user-defined rules."""

__version__ = "0.1.0"
