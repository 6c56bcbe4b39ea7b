"""Interoperability layer for external language services.

Provides clients for:
- Ollama: etymology and definition enrichment over HTTP
"""

from .ollama_client import OllamaClient

__all__ = ["OllamaClient"]
