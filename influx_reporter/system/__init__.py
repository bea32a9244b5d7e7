"""Pacote system: configuração de logging e arquivos de debug."""

from .logs import get_debug_file_path, setup_logging

__all__ = ["get_debug_file_path", "setup_logging"]
