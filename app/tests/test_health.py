async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_prometheus_endpoint_exposes_fleet_metrics(async_client):
    response = await async_client.get("/metrics/prometheus")
    assert response.status_code == 200
    assert "fleet_operation_requests_total" in response.text
