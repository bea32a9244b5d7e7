from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
import requests

from influx_reporter.exporter.influx import InfluxClient, InfluxError
from influx_reporter.exporter.points import Point

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code=204, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """Sessão requests simulada: registra chamadas e devolve respostas pré-definidas."""

    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.calls = []
        self.response = response or FakeResponse()
        self.exc = exc
        self.closed = False

    def _handle(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, kwargs=kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)

    def close(self):
        self.closed = True


def test_client_sets_token_header_and_strips_url():
    s = FakeSession()
    c = InfluxClient("http://influx:8086/", "tok", session=s)
    assert c.url == "http://influx:8086"
    assert s.headers["Authorization"] == "Token tok"


def test_ready_true_on_200():
    s = FakeSession(FakeResponse(200, {"status": "ready"}))
    c = InfluxClient("http://influx:8086", "tok", session=s)
    assert c.ready() is True
    assert s.calls[0].method == "GET"
    assert s.calls[0].url == "http://influx:8086/ready"
    assert s.calls[0].kwargs["timeout"] == c.timeout


def test_ready_false_on_non_200():
    s = FakeSession(FakeResponse(503))
    assert InfluxClient("http://influx:8086", "tok", session=s).ready() is False


def test_ready_raises_on_transport_error():
    s = FakeSession(exc=requests.ConnectionError("refused"))
    with pytest.raises(InfluxError):
        InfluxClient("http://influx:8086", "tok", session=s).ready()


def test_write_points_posts_line_protocol_batch():
    """Todos os pontos vão em uma única requisição, escopada por org/bucket."""
    s = FakeSession(FakeResponse(204))
    c = InfluxClient("http://influx:8086", "tok", session=s)
    c.write_api_blocking("acme", "metrics").write_points(
        Point("app", {"h": "a"}, {"x.count": 1}, T0),
        Point("app", {"h": "a"}, {"y.gauge": 2.5}, T0),
    )
    (call,) = s.calls
    assert call.method == "POST"
    assert call.url == "http://influx:8086/api/v2/write"
    assert call.kwargs["params"] == {"org": "acme", "bucket": "metrics", "precision": "ns"}
    body = call.kwargs["data"].decode("utf-8")
    assert body.splitlines() == [
        "app,h=a x.count=1i 1704067200000000000",
        "app,h=a y.gauge=2.5 1704067200000000000",
    ]
    assert call.kwargs["headers"]["Content-Type"].startswith("text/plain")


def test_write_points_empty_batch_sends_nothing():
    s = FakeSession()
    InfluxClient("http://influx:8086", "tok", session=s).write_api_blocking("o", "b").write_points()
    assert s.calls == []


def test_write_points_raises_with_server_message():
    s = FakeSession(FakeResponse(401, {"code": "unauthorized", "message": "unauthorized access"}))
    api = InfluxClient("http://influx:8086", "bad", session=s).write_api_blocking("o", "b")
    with pytest.raises(InfluxError) as ei:
        api.write_points(Point("m", {}, {"f": 1}, T0))
    assert ei.value.status == 401
    assert "unauthorized access" in str(ei.value)


def test_write_points_raises_on_transport_error():
    s = FakeSession(exc=requests.Timeout("slow"))
    api = InfluxClient("http://influx:8086", "tok", session=s).write_api_blocking("o", "b")
    with pytest.raises(InfluxError):
        api.write_points(Point("m", {}, {"f": 1}, T0))


def test_close_closes_session():
    s = FakeSession()
    InfluxClient("http://influx:8086", "tok", session=s).close()
    assert s.closed
