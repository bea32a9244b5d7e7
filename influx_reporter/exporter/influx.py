"""Cliente HTTP mínimo para o InfluxDB 2.x.

Endpoints usados:
- ``GET /ready``: verificação de prontidão (200 = pronto)
- ``POST /api/v2/write?org=<org>&bucket=<bucket>&precision=ns``: escrita em
  line protocol, autenticada com ``Authorization: Token <token>``

Erros de transporte e respostas não-2xx são convertidos em ``InfluxError``.
"""

import logging
from typing import Iterable

import requests  # type: ignore[import-untyped]

from .points import Point

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class InfluxError(Exception):
    """Falha ao falar com o InfluxDB; ``status`` é o código HTTP quando houver."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _error_message(resp) -> str:
    """Extraia a mensagem de erro do corpo JSON do InfluxDB, se existir."""
    try:
        body = resp.json()
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    except ValueError:
        pass
    text = (getattr(resp, "text", "") or "").strip()
    return text or f"HTTP {resp.status_code}"


class InfluxClient:
    """Cliente ligado a uma URL e a um token.

    Mantém uma ``requests.Session`` própria; ``close()`` libera as conexões.
    """

    def __init__(self, url: str, token: str, timeout: float = DEFAULT_TIMEOUT, session=None) -> None:
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Token {token}"})

    def ready(self) -> bool:
        """Retorna True quando ``/ready`` responde 200.

        Levanta ``InfluxError`` em falhas de transporte.
        """
        try:
            resp = self.session.get(f"{self.url}/ready", timeout=self.timeout)
        except requests.RequestException as exc:
            raise InfluxError(f"falha ao consultar /ready: {exc}") from exc
        if resp.status_code != 200:
            logger.debug("InfluxDB /ready respondeu %s", resp.status_code)
            return False
        return True

    def write_api_blocking(self, org: str, bucket: str) -> "WriteApiBlocking":
        return WriteApiBlocking(self, org, bucket)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception as exc:
            logger.debug("Falha ao fechar sessão HTTP do InfluxDB: %s", exc, exc_info=True)


class WriteApiBlocking:
    """Escrita síncrona de pontos em um org/bucket."""

    def __init__(self, client: InfluxClient, org: str, bucket: str) -> None:
        self.client = client
        self.org = org
        self.bucket = bucket

    def write_points(self, *points: Point) -> None:
        """Envia todos os pontos em uma única requisição.

        Pontos sem fields representáveis são descartados; sem linhas, nada é
        enviado. Levanta ``InfluxError`` em falha de transporte ou resposta
        não-2xx.
        """
        body = _encode(points)
        if not body:
            logger.debug("Nenhum ponto para enviar ao InfluxDB")
            return
        params = {"org": self.org, "bucket": self.bucket, "precision": "ns"}
        headers = {"Content-Type": "text/plain; charset=utf-8"}
        try:
            resp = self.client.session.post(
                f"{self.client.url}/api/v2/write",
                params=params,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=self.client.timeout,
            )
        except requests.RequestException as exc:
            raise InfluxError(f"falha ao escrever no InfluxDB: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise InfluxError(_error_message(resp), status=resp.status_code)
        logger.debug("InfluxDB: %d linhas escritas em %s/%s", body.count("\n") + 1, self.org, self.bucket)


def _encode(points: Iterable[Point]) -> str:
    lines = []
    for p in points:
        line = p.to_line()
        if line is not None:
            lines.append(line)
    return "\n".join(lines)
