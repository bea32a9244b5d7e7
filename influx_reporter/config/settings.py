"""Configurações do reporter InfluxDB.

Centraliza destino (URL, org, bucket, token), measurement, intervalo,
alinhamento, tags padrão e as opções de estatística. Carrega valores a
partir de ``DEFAULT_SETTINGS`` e permite overrides via arquivo ``.env`` ou
variáveis de ambiente (prefixos ``INFLUX_`` / ``INFLUX_REPORTER_``).

Funções públicas principais:

- ``load_settings()`` -> dicionário com as configurações efetivas.
- ``get_valid_settings()`` -> configurações validadas (fallback nos defaults).
"""

import os
from pathlib import Path

from ..monitoring.snapshots import BASIC_PERCENTILES, EXTENDED_PERCENTILES

# ========================
# Constantes e padrões globais
# ========================

DEFAULT_SETTINGS = {
    "url": "http://localhost:8086",
    "org": "",
    "bucket": "",
    "token": "",
    "measurement": "metrics",
    "interval": 10.0,
    "align": False,
    "tags": {},
    "stat_tag_key": "bucket",
    "percentiles": EXTENDED_PERCENTILES,
    "host_metrics": False,
    "log_level": "INFO",
}

# variável de ambiente -> chave de configuração
ENV_KEYS = {
    "INFLUX_URL": "url",
    "INFLUX_ORG": "org",
    "INFLUX_BUCKET": "bucket",
    "INFLUX_TOKEN": "token",
    "INFLUX_MEASUREMENT": "measurement",
    "INFLUX_REPORTER_INTERVAL_SEC": "interval",
    "INFLUX_REPORTER_ALIGN": "align",
    "INFLUX_REPORTER_TAGS": "tags",
    "INFLUX_REPORTER_STAT_TAG_KEY": "stat_tag_key",
    "INFLUX_REPORTER_PERCENTILES": "percentiles",
    "INFLUX_REPORTER_HOST_METRICS": "host_metrics",
    "INFLUX_REPORTER_LOG_LEVEL": "log_level",
}

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


# ========================
# 1. Conversores de valores
# ========================


def parse_bool(raw) -> bool:
    """Converte '1/true/yes/on' e '0/false/no/off' em bool; levanta ValueError caso contrário."""
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if s in _TRUE_VALUES:
        return True
    if s in _FALSE_VALUES:
        return False
    raise ValueError(f"valor booleano inválido: {raw!r}")


def parse_tags(raw) -> dict:
    """Converta 'k=v,k2=v2' (ou dict) em dict de strings.

    Itens sem '=' ou com chave vazia são ignorados; aspas em volta do valor
    são removidas.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {str(k): str(v) for k, v in raw.items()}
    out = {}
    for part in str(raw).split(","):
        part = part.strip()
        if "=" not in part:
            continue
        k, v = part.split("=", 1)
        k = k.strip()
        v = v.strip()
        if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
            v = v[1:-1]
        if k:
            out[k] = v
    return out


def parse_percentiles(raw) -> tuple:
    """Aceita 'extended', 'basic' ou lista '0.5,0.9'; cada valor deve estar em (0, 1)."""
    if isinstance(raw, (list, tuple)):
        values = tuple(float(p) for p in raw)
    else:
        s = str(raw).strip().lower()
        if s == "extended":
            return EXTENDED_PERCENTILES
        if s == "basic":
            return BASIC_PERCENTILES
        values = tuple(float(p) for p in s.split(",") if p.strip())
    if not values:
        raise ValueError("lista de percentis vazia")
    for p in values:
        if not 0.0 < p < 1.0:
            raise ValueError(f"percentil fora do intervalo (0, 1): {p}")
    return values


def _parse_interval(raw) -> float:
    v = float(raw)
    if v <= 0.0:
        raise ValueError("intervalo deve ser > 0")
    return v


_PARSERS = {
    "interval": _parse_interval,
    "align": parse_bool,
    "host_metrics": parse_bool,
    "tags": parse_tags,
    "percentiles": parse_percentiles,
    "log_level": lambda raw: str(raw).strip().upper(),
}


# ========================
# 2. Carregamento das configurações
# ========================


# Função principal do módulo; carrega todas as configurações do ambiente
def load_settings() -> dict:
    """Carrega configurações combinando DEFAULTS + .env + ambiente.

    As variáveis em ambiente sobrescrevem valores do arquivo `.env`. Valores
    inválidos são registrados como aviso e o default é mantido.
    """
    import logging

    logger = logging.getLogger(__name__)

    settings = {k: (v.copy() if isinstance(v, dict) else v) for k, v in DEFAULT_SETTINGS.items()}

    project_root = Path(__file__).resolve().parents[2]
    env_path = Path(os.getenv("INFLUX_REPORTER_ENV_FILE", project_root / ".env"))

    env_items = _merge_env_items(env_path, logger)
    _apply_overrides(env_items, settings, logger)
    return settings


# Auxilia load_settings; criado para centralizar leitura do .env
def _read_env_file(path: Path | str) -> dict:
    """Lê um arquivo `.env` e devolve um dicionário chave->valor.

    Linhas vazias e comentários (começando com '#') são ignorados.
    """
    import logging

    logger = logging.getLogger(__name__)
    result: dict[str, str] = {}
    p = Path(path)
    if not p.exists():
        return result
    try:
        with p.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                result[key.strip()] = val.strip().strip('"').strip("'")
    except OSError as exc:
        logger.debug("Falha ao ler .env em %s: %s", p, exc)
        return {}
    return result


# Auxilia load_settings; criado para unir variáveis do ambiente e .env
def _merge_env_items(env_path: Path, logger) -> dict:
    """Retorna um mapeamento combinado de `.env` e env vars do processo."""
    env_items = _read_env_file(env_path)
    if env_items == {} and env_path.exists():
        logger.warning("Erro ou ficheiro .env vazio em %s", env_path)
    env_items.update(os.environ)
    return env_items


# Auxilia load_settings; criado para aplicar overrides conhecidos
def _apply_overrides(env_items: dict, settings: dict, logger) -> None:
    """Aplica em ``settings`` os valores de ``env_items`` cujas chaves estão em ``ENV_KEYS``."""
    for env_var, key in ENV_KEYS.items():
        if env_var not in env_items:
            continue
        raw = env_items[env_var]
        parser = _PARSERS.get(key)
        if parser is None:
            settings[key] = str(raw).strip()
            continue
        try:
            settings[key] = parser(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Valor inválido para %s (%r): %s. Mantendo padrão.", env_var, raw, exc)


# ========================
# 3. Validação
# ========================


def validate_settings(settings: dict) -> dict:
    """Normaliza e valida o dicionário de configurações.

    Preenche chaves ausentes com os defaults e levanta ValueError para
    valores inválidos.
    """
    import logging

    logger = logging.getLogger(__name__)
    if not isinstance(settings, dict):
        raise TypeError("settings deve ser um dict")

    for key, default in DEFAULT_SETTINGS.items():
        if settings.get(key) is None:
            settings[key] = default.copy() if isinstance(default, dict) else default

    settings["interval"] = _parse_interval(settings["interval"])
    settings["align"] = parse_bool(settings["align"])
    settings["host_metrics"] = parse_bool(settings["host_metrics"])
    settings["tags"] = parse_tags(settings["tags"])
    settings["percentiles"] = parse_percentiles(settings["percentiles"])
    if not str(settings["measurement"]).strip():
        raise ValueError("measurement não pode ser vazio")
    if not str(settings["stat_tag_key"]).strip():
        raise ValueError("stat_tag_key não pode ser vazio")
    logger.debug("Configurações validadas e normalizadas")
    return settings


def get_valid_settings(settings: dict | None = None) -> dict:
    """Retorna configurações validadas.

    Em caso de erro, retorna os defaults e registra aviso.
    """
    import logging

    logger = logging.getLogger(__name__)
    try:
        if settings is None:
            settings = load_settings()
        return validate_settings(settings)
    except (TypeError, ValueError, OSError) as exc:
        logger.warning("Falha ao validar settings; serão usados DEFAULT_SETTINGS: %s", exc)
        return {k: (v.copy() if isinstance(v, dict) else v) for k, v in DEFAULT_SETTINGS.items()}
