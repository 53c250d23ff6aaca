from .base import BaseClient, Client
from .console import ConsoleClient

__all__ = ["BaseClient", "Client", "ConsoleClient"]
