"""Parser de argumentos do reporter.

Este módulo fornece um parser simples que expõe:
- destino InfluxDB (--url, --org, --bucket, --token, --measurement)
- intervalo entre envios (-i / --interval) e alinhamento (--align)
- tags padrão (--tag k=v, repetível)
- opções de estatística (--stat-tag-key, --percentiles)
- número de ciclos (-c / --cycles), 0 = infinito
- verbosidade (-v) e opções de logging (nível e caminho raiz)

Prioridade dos valores: CLI > variáveis de ambiente / .env > default.
"""

import argparse
import logging
from typing import Sequence

from ..config.settings import get_valid_settings, parse_percentiles, parse_tags

# ========================
# 0. Configuração do parser
# ========================

# argumentos cujo valor ausente na CLI vem das configurações
_SETTINGS_ARGS = (
    "url",
    "org",
    "bucket",
    "token",
    "measurement",
    "interval",
    "align",
    "stat_tag_key",
    "percentiles",
    "host_metrics",
)


# Função principal do módulo; cria e retorna o ArgumentParser configurado
def configure_argparser() -> argparse.ArgumentParser:
    """Cria e retorna ArgumentParser configurado para o reporter."""
    parser = argparse.ArgumentParser(
        prog="influx-reporter",
        description="Exporta periodicamente métricas em processo para o InfluxDB",
    )
    parser.add_argument("--url", default=None, help="URL do InfluxDB (substitui INFLUX_URL)")
    parser.add_argument("--org", default=None, help="Organização de destino (substitui INFLUX_ORG)")
    parser.add_argument("--bucket", default=None, help="Bucket de destino (substitui INFLUX_BUCKET)")
    parser.add_argument("--token", default=None, help="Token de autenticação (substitui INFLUX_TOKEN)")
    parser.add_argument("--measurement", default=None, help="Nome do measurement (substitui INFLUX_MEASUREMENT)")
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help="Intervalo em segundos entre envios (float > 0)",
    )
    parser.add_argument(
        "--align",
        action="store_true",
        default=None,
        help="Trunca os timestamps para múltiplos do intervalo",
    )
    parser.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=None,
        metavar="K=V",
        help="Tag padrão adicionada a todos os pontos (repetível)",
    )
    parser.add_argument(
        "--stat-tag-key",
        dest="stat_tag_key",
        default=None,
        help="Chave da tag que identifica a estatística (ex: bucket, bucketId)",
    )
    parser.add_argument(
        "--percentiles",
        default=None,
        help="Percentis: 'extended', 'basic' ou lista '0.5,0.9,0.99'",
    )
    parser.add_argument(
        "--host-metrics",
        dest="host_metrics",
        action="store_true",
        default=None,
        help="Registra métricas do host (CPU, RAM, disco, rede)",
    )
    parser.add_argument(
        "-c",
        "--cycles",
        type=int,
        default=0,
        help="Número de despertares do loop a executar (0 = infinito)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Aumenta a verbosidade (-v, -vv)",
    )
    parser.add_argument(
        "--log-root",
        dest="log_root",
        type=str,
        default=None,
        help="Caminho raiz para os logs (substitui INFLUX_REPORTER_LOG_ROOT)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        default=None,
        help="Nível de logging (DEBUG/INFO/WARNING/ERROR). Se ausente, definido por -v",
    )
    return parser


# ========================
# 1. Análise e validação
# ========================


# Auxilia influx_reporter.main; analisa argv e completa com as configurações
def parse_args(argv: Sequence[str] | None = None, settings: dict | None = None) -> argparse.Namespace:
    """Analisa argv e retorna Namespace validado para uso no programa."""
    parser = configure_argparser()
    ns = parser.parse_args(argv)
    if settings is None:
        settings = get_valid_settings()

    # CLI tem precedência; valores ausentes vêm das configurações (.env/ambiente/default)
    for arg in _SETTINGS_ARGS:
        if getattr(ns, arg, None) is None:
            setattr(ns, arg, settings.get(arg))

    tags = dict(settings.get("tags") or {})
    if ns.tags:
        tags.update(parse_tags(",".join(ns.tags)))
    ns.tags = tags
    validate_args(ns)
    return ns


# Auxilia parse_args; criado para garantir valores corretos e seguros
def validate_args(args: argparse.Namespace) -> None:
    """Valida e normaliza argumentos do reporter."""
    try:
        args.interval = float(args.interval)
    except (TypeError, ValueError) as exc:
        raise ValueError("intervalo deve ser um número") from exc
    if args.interval <= 0.0:
        raise ValueError("intervalo deve ser > 0")

    try:
        args.cycles = int(args.cycles)
    except (TypeError, ValueError) as exc:
        raise ValueError("cycles deve ser um inteiro >= 0") from exc
    if args.cycles < 0:
        raise ValueError("cycles deve ser >= 0")

    if not getattr(args, "url", None):
        raise ValueError("url do InfluxDB é obrigatória")

    percentiles = getattr(args, "percentiles", None)
    if percentiles is not None:
        args.percentiles = parse_percentiles(percentiles)

    if not getattr(args, "org", None) or not getattr(args, "bucket", None):
        logging.getLogger(__name__).warning("org/bucket não definidos; as escritas serão rejeitadas pelo InfluxDB")


# ========================
# 2. Configuração de logging
# ========================


# Auxilia influx_reporter.main; extrai configuração de logging dos argumentos
def get_log_config(args: argparse.Namespace, settings: dict | None = None) -> dict:
    """Retorna dict com configuração de logging ('level' e 'root')."""
    if getattr(args, "log_level", None):
        level = str(args.log_level).upper()
    else:
        v = getattr(args, "verbose", 0) or 0
        if v >= 2:
            level = "DEBUG"
        elif v == 1:
            level = "INFO"
        else:
            level = str((settings or {}).get("log_level") or "WARNING").upper()

    return {"level": level, "root": getattr(args, "log_root", None)}
