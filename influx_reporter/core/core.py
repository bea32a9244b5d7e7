"""Core do reporter: loop periódico de exportação para o InfluxDB.

Um único loop multiplexa dois temporizadores independentes:

- intervalo de envio: snapshot de todas as métricas do registry, conversão
  em pontos e uma escrita bloqueante do lote inteiro;
- verificação de prontidão (a cada 5 segundos): ``/ready`` e, em caso de
  falha, recriação do cliente.

Apenas um ramo executa por despertar. Ticks perdidos enquanto um ramo está
ocupado são descartados, nunca recuperados. Erros de escrita e de ping são
registrados em log e o loop segue no próximo tick.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping
from urllib.parse import urlsplit

from ..exporter.influx import InfluxClient, InfluxError
from ..exporter.points import DEFAULT_STAT_TAG_KEY, Point, align_time, points_for_metric
from ..monitoring.snapshots import EXTENDED_PERCENTILES

logger = logging.getLogger(__name__)

PING_INTERVAL = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========================
# 1. Configuração imutável
# ========================


@dataclass(frozen=True)
class ReporterConfig:
    """Parâmetros do reporter, fixos após a construção.

    ``interval`` em segundos (> 0). ``tags`` é copiado para um mapeamento
    somente leitura.
    """

    registry: Any
    interval: float
    url: str
    org: str
    bucket: str
    measurement: str
    token: str
    tags: Mapping[str, str] = field(default_factory=dict)
    align: bool = False
    stat_tag_key: str = DEFAULT_STAT_TAG_KEY
    percentiles: tuple[float, ...] = EXTENDED_PERCENTILES

    def __post_init__(self) -> None:
        try:
            interval = float(self.interval)
        except (TypeError, ValueError) as exc:
            raise ValueError("intervalo deve ser um número") from exc
        if interval <= 0.0:
            raise ValueError("intervalo deve ser > 0")
        object.__setattr__(self, "interval", interval)
        object.__setattr__(self, "tags", MappingProxyType({str(k): str(v) for k, v in (self.tags or {}).items()}))
        object.__setattr__(self, "percentiles", tuple(float(p) for p in self.percentiles))


def parse_url(url: str) -> str | None:
    """Valida a URL do InfluxDB; retorna a URL normalizada ou None se inválida."""
    try:
        parts = urlsplit(str(url).strip())
        # acessar .port valida a porta
        _ = parts.port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    return parts.geturl()


def _next_deadline(prev: float, period: float, now: float) -> float:
    """Próximo deadline após ``prev``; ticks já vencidos são descartados."""
    nxt = prev + period
    if nxt <= now:
        missed = int((now - nxt) // period) + 1
        nxt += missed * period
    return nxt


# ========================
# 2. Reporter
# ========================


class Reporter:
    """Exporta periodicamente as métricas de um registry para o InfluxDB.

    O cliente (``self.client``) é o único estado mutável: é substituído por
    inteiro quando uma verificação de prontidão falha. Relógio monotônico,
    ``sleep`` e relógio de parede são injetáveis para testes.
    """

    def __init__(
        self,
        config: ReporterConfig,
        client_factory: Callable[[str, str], Any] = InfluxClient,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self._clock = clock
        self._sleep = sleep
        self._now = now
        self.client: Any = None
        self.make_client()

    def make_client(self) -> None:
        """Cria um cliente novo para a mesma URL/token e descarta o anterior."""
        old = self.client
        self.client = self._client_factory(self.config.url, self.config.token)
        close = getattr(old, "close", None)
        if callable(close):
            try:
                close()
            except Exception as exc:
                logger.debug("Falha ao fechar cliente anterior: %s", exc, exc_info=True)

    def tick_time(self) -> datetime:
        """Horário do tick atual, truncado ao intervalo quando ``align`` estiver ativo."""
        now = self._now()
        if self.config.align:
            now = align_time(now, self.config.interval)
        return now

    def collect(self, now: datetime | None = None) -> list[Point]:
        """Percorre o registry uma vez e devolve os pontos de todas as métricas.

        Todos os pontos compartilham o mesmo ``now``. Uma métrica cujo
        snapshot falha é ignorada neste tick.
        """
        cfg = self.config
        if now is None:
            now = self.tick_time()
        pts: list[Point] = []

        def _visit(name: str, metric: Any) -> None:
            snapshot_fn = getattr(metric, "snapshot", None)
            if not callable(snapshot_fn):
                logger.debug("Métrica %s sem snapshot(); ignorada", name)
                return
            try:
                snap = snapshot_fn()
            except Exception as exc:
                logger.warning("Falha ao obter snapshot de %s: %s", name, exc, exc_info=True)
                return
            pts.extend(
                points_for_metric(name, snap, cfg.measurement, cfg.tags, now, cfg.stat_tag_key, cfg.percentiles)
            )

        cfg.registry.each(_visit)
        return pts

    def send(self) -> None:
        """Envia um lote com todas as métricas; levanta ``InfluxError`` se a escrita falhar."""
        pts = self.collect()
        self.client.write_api_blocking(self.config.org, self.config.bucket).write_points(*pts)

    def check_ready(self) -> bool:
        """Ping no InfluxDB; recria o cliente quando não estiver pronto."""
        err: Exception | None = None
        try:
            ready = bool(self.client.ready())
        except Exception as exc:
            # qualquer erro no ping conta como não pronto
            ready = False
            err = exc
        if not ready:
            logger.warning("Ping ao InfluxDB falhou, recriando cliente. err=%s", err)
            self.make_client()
        return ready

    def _send_and_log(self) -> None:
        try:
            self.send()
        except InfluxError as exc:
            logger.error("Não foi possível enviar métricas ao InfluxDB. err=%s", exc)
        except Exception as exc:
            logger.exception("Erro inesperado ao enviar métricas ao InfluxDB: %s", exc)

    def _check_ready_and_log(self) -> None:
        try:
            self.check_ready()
        except Exception as exc:
            logger.exception("Erro inesperado na verificação do InfluxDB: %s", exc)

    def run(self, cycles: int = 0) -> None:
        """Loop principal.

        Parâmetros:
            cycles: número de despertares a tratar (0 = infinito).
        """
        interval = self.config.interval
        start = self._clock()
        next_send = start + interval
        next_ping = start + PING_INTERVAL
        executed = 0
        try:
            while True:
                deadline = min(next_send, next_ping)
                wait = deadline - self._clock()
                if wait > 0:
                    self._sleep(wait)
                if next_send <= next_ping:
                    self._send_and_log()
                    next_send = _next_deadline(next_send, interval, self._clock())
                else:
                    self._check_ready_and_log()
                    next_ping = _next_deadline(next_ping, PING_INTERVAL, self._clock())
                executed += 1
                if cycles != 0 and executed >= cycles:
                    break
        except KeyboardInterrupt:
            logger.info("Recebido KeyboardInterrupt, encerrando reporter...")


# ========================
# 3. Pontos de entrada
# ========================


def influxdb(
    registry: Any,
    interval: float,
    url: str,
    org: str,
    bucket: str,
    measurement: str,
    token: str,
    align_timestamps: bool = False,
    **options: Any,
) -> None:
    """Inicia o reporter sem tags adicionais (bloqueia até o fim do loop)."""
    influxdb_with_tags(registry, interval, url, org, bucket, measurement, token, {}, align_timestamps, **options)


def build_reporter(
    registry: Any,
    interval: float,
    url: str,
    org: str,
    bucket: str,
    measurement: str,
    token: str,
    tags: Mapping[str, str] | None = None,
    align_timestamps: bool = False,
    *,
    stat_tag_key: str = DEFAULT_STAT_TAG_KEY,
    percentiles=EXTENDED_PERCENTILES,
    client_factory: Callable[[str, str], Any] = InfluxClient,
    **reporter_kwargs: Any,
) -> Reporter | None:
    """Valida os parâmetros e constrói o reporter, sem iniciar o loop.

    URL inválida: registra erro e devolve None. Intervalo inválido levanta
    ``ValueError`` no thread de quem chamou.
    """
    parsed = parse_url(url)
    if parsed is None:
        logger.error("Não foi possível interpretar a URL do InfluxDB %s", url)
        return None

    config = ReporterConfig(
        registry=registry,
        interval=interval,
        url=parsed,
        org=org,
        bucket=bucket,
        measurement=measurement,
        token=token,
        tags=tags or {},
        align=align_timestamps,
        stat_tag_key=stat_tag_key,
        percentiles=tuple(percentiles),
    )
    rep = Reporter(config, client_factory=client_factory, **reporter_kwargs)
    logger.info(
        "Reporter InfluxDB iniciado: url=%s org=%s bucket=%s intervalo=%.3fs",
        config.url,
        config.org,
        config.bucket,
        config.interval,
    )
    return rep


def influxdb_with_tags(*args: Any, cycles: int = 0, **kwargs: Any) -> None:
    """Inicia o reporter e executa o loop no thread atual.

    Aceita os mesmos parâmetros de ``build_reporter``; com URL inválida
    retorna sem iniciar o loop.
    """
    rep = build_reporter(*args, **kwargs)
    if rep is None:
        return
    rep.run(cycles=cycles)


def start_background(*args: Any, cycles: int = 0, **kwargs: Any) -> threading.Thread | None:
    """Executa o loop do reporter em um thread daemon e o devolve.

    A configuração é validada antes de criar o thread, então ``ValueError``
    chega a quem chamou. Com URL inválida devolve None.
    """
    rep = build_reporter(*args, **kwargs)
    if rep is None:
        return None
    t = threading.Thread(target=rep.run, kwargs={"cycles": cycles}, name="influx-reporter", daemon=True)
    t.start()
    return t
