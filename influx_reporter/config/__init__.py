"""Pacote config: carregamento e validação das configurações."""

from .settings import get_valid_settings, load_settings

__all__ = ["get_valid_settings", "load_settings"]
