from __future__ import annotations

import logging

from middleware import _safe_headers
from services import metrics


def test_request_id_added_when_missing(client):
    resp = client.get("/health")
    assert resp.status_code == 200, resp.text
    assert resp.headers.get("X-Request-Id")


def test_request_id_echoed_when_present(client):
    resp = client.get("/health", headers={"X-Request-Id": "client-request-id"})
    assert resp.status_code == 200, resp.text
    assert resp.headers.get("X-Request-Id") == "client-request-id"


def test_request_log_includes_method_path_status(client, caplog):
    caplog.set_level(logging.INFO, logger="umapesa.http")
    resp = client.get("/health")
    assert resp.status_code == 200, resp.text
    assert any(
        "http_request" in record.message
        and "method=GET" in record.message
        and "path=/health" in record.message
        and "status=200" in record.message
        and "duration_ms=" in record.message
        for record in caplog.records
    )


def test_signature_headers_are_never_logged():
    safe = _safe_headers({"X-Nhonga-Signature": "abc123", "Authorization": "Bearer x", "Accept": "*/*"})
    assert safe == {"X-Nhonga-Signature": "***", "Authorization": "***", "Accept": "*/*"}


def test_unmatched_paths_share_one_metrics_series(client):
    for i in range(20):
        assert client.get(f"/scan-{i}").status_code == 404

    assert metrics.get_counter("http_requests_total", {"route": "<unmatched>", "status": "404"}) == 20
    assert "/scan-3" not in metrics.render_prometheus()


def test_matched_requests_are_labelled_by_route_template(client):
    client.post("/webhook/unknown-provider", content=b"{}")
    assert metrics.get_counter("http_requests_total", {"route": "/webhook/{provider}", "status": "404"}) == 1
