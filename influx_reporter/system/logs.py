"""Subsistema de logs do reporter.

Configura o logging da aplicação: saída padrão via ``basicConfig`` e
arquivos diários de debug (texto legível e JSONL) no diretório
``<raiz>/debug``. Também instala um ``sys.excepthook`` que envia exceções
não tratadas para o logger root.
"""

import json as _json
import logging
import os
import sys
import types as _types
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOG_ROOT = "logs"
DEBUG_LOG_FILENAME = "debug_log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ========================
# 1. Diretórios e paths
# ========================


def get_log_root(root: str | Path | None = None) -> Path:
    """Resolve a raiz de logs: argumento, ``INFLUX_REPORTER_LOG_ROOT`` ou 'logs'."""
    candidate = root if root else os.getenv("INFLUX_REPORTER_LOG_ROOT", DEFAULT_LOG_ROOT)
    return Path(str(candidate).strip() or DEFAULT_LOG_ROOT)


def get_debug_file_path(root: str | Path | None = None) -> Path:
    """Retorna caminho do arquivo de debug diário, criando o diretório se preciso."""
    debug_dir = get_log_root(root) / "debug"
    debug_dir.mkdir(parents=True, exist_ok=True)
    date_str = datetime.now().strftime("%Y-%m-%d")
    return debug_dir / f"{DEBUG_LOG_FILENAME}-{date_str}.txt"


# ========================
# 2. Handlers e formatters
# ========================


def _get_json_formatter():
    class _JSONFormatter(logging.Formatter):
        def format(self, record):
            try:
                ts = self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ")
            except Exception:
                ts = ""
            obj = {
                "ts": ts,
                "level": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                try:
                    import traceback as _tb

                    obj["exc"] = "".join(_tb.format_exception(*record.exc_info))
                except Exception:
                    logger.warning("Falha ao formatar exc_info para JSON", exc_info=True)
            return _json.dumps(obj, ensure_ascii=False)

    return _JSONFormatter()


def _has_existing_file_handler(root, paths) -> bool:
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) in paths:
            return True
    return False


def _wrap_emit_safe(handler) -> None:
    """Substitui ``emit`` por uma versão que nunca propaga exceções do handler."""
    orig = handler.emit

    def _emit_safe(self, record):
        try:
            return orig(record)
        except Exception:
            logger.warning("debug handler emit failed", exc_info=True)

    handler.emit = _types.MethodType(_emit_safe, handler)  # type: ignore[assignment]


def setup_debug_file_handler(root: str | Path | None = None) -> None:
    """Instala handlers de arquivo (texto e JSONL) e o hook global de exceções.

    Não duplica handlers já instalados para os mesmos caminhos.
    """
    debug_path = get_debug_file_path(root)

    fh = logging.FileHandler(str(debug_path), encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))

    jfh = logging.FileHandler(str(debug_path.with_suffix(".jsonl")), encoding="utf-8")
    jfh.setLevel(logging.INFO)
    jfh.setFormatter(_get_json_formatter())

    root_logger = logging.getLogger()
    paths = (fh.baseFilename, jfh.baseFilename)
    if _has_existing_file_handler(root_logger, paths):
        fh.close()
        jfh.close()
    else:
        _wrap_emit_safe(fh)
        _wrap_emit_safe(jfh)
        root_logger.addHandler(fh)
        root_logger.addHandler(jfh)

    def _exc_hook(exc_type, exc_value, exc_tb):
        try:
            root_logger.error("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        except Exception:
            sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _exc_hook


def setup_logging(level: str = "WARNING", root: str | Path | None = None) -> None:
    """Configura o logging do processo: stderr + arquivos de debug (best-effort)."""
    lvl = getattr(logging, str(level).upper(), logging.WARNING)
    logging.basicConfig(level=lvl, format=LOG_FORMAT)
    try:
        setup_debug_file_handler(root)
    except OSError as exc:
        logger.debug("falha ao configurar debug file handler: %s", exc, exc_info=True)
