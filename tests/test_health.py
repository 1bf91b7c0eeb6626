def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200

    payload = response.json()
    assert payload["status_code"] == 200
    assert payload["status"] == "success"
    assert payload["message"] == "Service is healthy"
    assert payload["data"] == {"status": "ok", "service": "Page Audit Engine"}


def test_root_info(client):
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()
    assert payload["app_name"] == "Page Audit Engine"
    assert payload["version"] == "1.0.0"
    assert payload["docs_url"] == "/docs"
    assert payload["api_base"] == "/api/v1"


def test_cache_health(client, cache):
    cache.set_artifact("a-1", b"pdf")

    response = client.get("/health/cache")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["enabled"] is True
    assert data["artifact"]["valid"] == 1
    assert data["analysis"]["total"] == 0
