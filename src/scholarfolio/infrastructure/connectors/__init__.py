from .openalex_client import OpenAlexClient

__all__ = ["OpenAlexClient"]
