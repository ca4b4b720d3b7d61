"""Build Falco event notifications for chat, storage and metrics outputs, and deliver them."""

__version__ = "0.1.0"