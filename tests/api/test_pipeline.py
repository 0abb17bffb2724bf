"""Request Pipeline: end-to-end behavior of every stage through the ASGI app.

Tests cover:
    - /health answers 200 empty for any method and skips every later stage
    - GET /version returns {name, version} regardless of body
    - PUT / calls the rule engine once and relays output or error
    - Malformed / oversized / scalar bodies answer 4xx without calling the engine
    - Unmatched routes answer 404 "Not Found"
    - Uncaught faults answer 500 without leaking detail
"""

import logging

import pytest
from httpx import ASGITransport, AsyncClient

from optimus.server import OptimusServer
from optimus.services.rule_engine import TransformError


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "HEAD"])
async def test_health_returns_200_with_empty_body(client, method):
    res = await client.request(method, "/health")
    assert res.status_code == 200
    assert res.content == b""


async def test_health_subpath_is_also_health(client):
    res = await client.get("/health/live")
    assert res.status_code == 200
    assert res.content == b""


async def test_health_skips_metrics_logging_and_dispatch(client, app, rule_engine, caplog):
    caplog.set_level(logging.INFO)
    await client.put("/health", content=b"not json")

    assert rule_engine.call_count == 0
    assert not [r for r in caplog.records if r.name == "optimus.access"]
    samples = [
        s for m in app.state.metrics.registry.collect() for s in m.samples
    ]
    assert samples == []


async def test_version_returns_name_and_configured_version(client):
    res = await client.get("/version")
    assert res.status_code == 200
    assert res.json() == {"name": "optimus", "version": "1.2.3"}


async def test_version_name_ignores_service_name_env(monkeypatch, settings_factory, rule_engine):
    monkeypatch.setenv("SERVICE_NAME", "payments-api")
    app = OptimusServer(settings_factory(), rule_engine=rule_engine).get_instance()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        res = await c.get("/version")
    assert res.json() == {"name": "optimus", "version": "1.2.3"}


async def test_version_ignores_malformed_body(client):
    res = await client.request(
        "GET", "/version", content=b"{oops",
        headers={"content-type": "application/json"},
    )
    assert res.status_code == 200
    assert res.json() == {"name": "optimus", "version": "1.2.3"}


async def test_put_root_relays_engine_output(client, rule_engine):
    res = await client.put("/", json={"rules": [], "input": {}})
    assert res.status_code == 200
    assert res.json() == {}
    rule_engine.assert_called_once_with({"rules": [], "input": {}})


async def test_put_root_returns_output_verbatim(client, rule_engine):
    output = {"a": [1, 2, {"b": None}], "c": "d"}
    rule_engine.return_value = output
    res = await client.put("/", json={"rules": ["x"], "input": {"a": 1}})
    assert res.status_code == 200
    assert res.json() == output


async def test_put_root_with_array_body(client, rule_engine):
    rule_engine.return_value = [1, 2]
    res = await client.put("/", json=[{"op": "noop"}])
    assert res.status_code == 200
    assert res.json() == [1, 2]
    rule_engine.assert_called_once_with([{"op": "noop"}])


async def test_put_root_relays_engine_error_status_and_message(client, rule_engine):
    rule_engine.side_effect = TransformError("Invalid rule at index 0", 422)
    res = await client.put("/", json={"rules": [{}]})
    assert res.status_code == 422
    assert res.text == "Invalid rule at index 0"


async def test_put_root_engine_error_without_status_is_500(client, rule_engine):
    rule_engine.side_effect = TransformError("engine exploded")
    res = await client.put("/", json={"rules": []})
    assert res.status_code == 500
    assert res.text == "engine exploded"


async def test_malformed_json_is_400_and_engine_not_called(client, rule_engine):
    res = await client.put(
        "/", content=b"not json", headers={"content-type": "application/json"},
    )
    assert res.status_code == 400
    assert "Malformed JSON body" in res.text
    assert rule_engine.call_count == 0


async def test_malformed_json_without_content_type_is_400(client, rule_engine):
    res = await client.put("/", content=b"not json")
    assert res.status_code == 400
    assert rule_engine.call_count == 0


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
async def test_non_standard_json_literal_is_400(client, rule_engine, literal):
    rule_engine.side_effect = lambda body: body["input"]
    res = await client.put(
        "/", content=f'{{"rules": [], "input": {literal}}}'.encode(),
        headers={"content-type": "application/json"},
    )
    assert res.status_code == 400
    assert res.text.startswith("Malformed JSON body")
    assert rule_engine.call_count == 0


async def test_scalar_json_body_is_400(client, rule_engine):
    res = await client.put(
        "/", content=b"42", headers={"content-type": "application/json"},
    )
    assert res.status_code == 400
    assert res.text == "JSON body must be an object or an array"
    assert rule_engine.call_count == 0


async def test_non_json_content_type_passes_empty_object(client, rule_engine):
    res = await client.put(
        "/", content=b"a=b", headers={"content-type": "text/plain"},
    )
    assert res.status_code == 200
    rule_engine.assert_called_once_with({})


async def test_empty_body_passes_empty_object(client, rule_engine):
    res = await client.put("/")
    assert res.status_code == 200
    rule_engine.assert_called_once_with({})


async def test_oversized_body_is_413(settings_factory, rule_engine):
    app = OptimusServer(
        settings_factory(body_limit_bytes=16), rule_engine=rule_engine,
    ).get_instance()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        res = await c.put("/", json={"rules": [], "input": "x" * 64})
    assert res.status_code == 413
    assert res.text == "Request body exceeds the 16 byte limit"
    assert rule_engine.call_count == 0


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("DELETE", "/foo"),
        ("GET", "/"),
        ("POST", "/"),
        ("PUT", "/version"),
        ("GET", "/version/extra"),
        ("PATCH", "/a/b/c"),
    ],
)
async def test_unmatched_routes_are_404_not_found(client, method, path):
    res = await client.request(method, path)
    assert res.status_code == 404
    assert res.text == "Not Found"


async def test_unmatched_route_ignores_body(client, rule_engine):
    res = await client.request(
        "DELETE", "/foo", content=b"{oops",
        headers={"content-type": "application/json"},
    )
    assert res.status_code == 404
    assert rule_engine.call_count == 0


async def test_uncaught_engine_fault_is_500_without_detail(client, rule_engine):
    rule_engine.side_effect = KeyError("secret internal key")
    res = await client.put("/", json={"rules": []})
    assert res.status_code == 500
    assert res.text == "Internal Server Error"
    assert "secret" not in res.text


async def test_unserializable_engine_output_is_500(client, rule_engine):
    rule_engine.return_value = {"when": object()}
    res = await client.put("/", json={"rules": []})
    assert res.status_code == 500
    assert res.text == "Internal Server Error"


async def test_error_responses_are_plain_text(client):
    res = await client.delete("/foo")
    assert res.headers["content-type"].startswith("text/plain")
