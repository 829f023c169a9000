from lesson_engine.main import API_VERSION


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == API_VERSION
    assert body["environment"] == "test"


def test_metrics_exposes_service_timings(client):
    client.get("/api/v1/admin/holidays", params={"start": "2025-06-01", "end": "2025-06-30"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "lesson_engine_service_operation_duration_seconds" in response.text
    assert 'operation="list_holidays"' in response.text


def test_unknown_route_is_problem_json(client):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    assert response.json()["title"] == "Not Found"
    assert response.json()["instance"] == "/api/v1/nothing-here"
