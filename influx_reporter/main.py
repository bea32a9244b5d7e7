"""Ponto de entrada do reporter InfluxDB.

Realiza a inicialização da aplicação: parsing de argumentos CLI,
configuração de logging, registro opcional das métricas do host e início
do loop do reporter. A lógica de runtime fica em ``core`` para facilitar
testes e reutilização por aplicações que já possuem um registry.
"""

import logging as _logging

from .config.settings import get_valid_settings
from .core.args import get_log_config, parse_args
from .core.core import influxdb_with_tags as _run_reporter
from .monitoring.host import register_host_metrics
from .monitoring.registry import Registry
from .system.logs import setup_logging


def main(argv: list[str] | None = None, registry: Registry | None = None) -> None:
    """Inicializa a aplicação e inicia o loop do reporter.

    Args:
        argv: Lista de argumentos (usada em testes). Quando ``None`` a função
            utiliza os argumentos de linha de comando do processo.
        registry: Registry a exportar; um novo é criado quando ``None``.

    """
    settings = get_valid_settings()
    args = parse_args(argv, settings=settings)
    log_conf = get_log_config(args, settings)
    setup_logging(log_conf.get("level", "WARNING"), log_conf.get("root"))

    if registry is None:
        registry = Registry()
    if args.host_metrics:
        register_host_metrics(registry)

    _run_reporter(
        registry,
        args.interval,
        args.url,
        args.org,
        args.bucket,
        args.measurement,
        args.token,
        args.tags,
        bool(args.align),
        stat_tag_key=args.stat_tag_key,
        percentiles=args.percentiles,
        cycles=args.cycles,
    )
    _logging.getLogger(__name__).info("Reporter finalizado")


if __name__ == "__main__":
    main()
