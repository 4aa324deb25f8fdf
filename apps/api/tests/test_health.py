"""
Liveness endpoint and the cached integration health report.
"""
from portal.services.integration_health_service import IntegrationHealthService
from portal.services.oauth_service import TokenSet


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_report_for_disconnected_integrations(db, integrations):
    report = await IntegrationHealthService(cache_seconds=30).get_health_report(db, integrations)

    by_type = {s["type"]: s for s in report["integrations"]}
    assert by_type["onedrive"]["configured"] is True
    assert by_type["onedrive"]["connected"] is False
    assert by_type["google_calendar"]["connected"] is False
    assert report["overall_healthy"] is False


async def test_report_is_cached_for_ttl(db, integrations, providers):
    integrations.google.save_tokens(db, TokenSet("token", "refresh", 3600, None))
    providers.add("GET", "/users/me/calendarList", {"items": [{"id": "primary"}]})
    clock = FakeClock()
    health = IntegrationHealthService(cache_seconds=30, clock=clock)

    first = await health.get_health_report(db, integrations)
    clock.now += 10
    second = await health.get_health_report(db, integrations)

    assert second is first
    assert len(providers.calls("GET", "/users/me/calendarList")) == 1

    clock.now += 30
    third = await health.get_health_report(db, integrations)

    assert third is not first
    assert len(providers.calls("GET", "/users/me/calendarList")) == 2
    google = next(s for s in third["integrations"] if s["type"] == "google_calendar")
    assert google["healthy"] is True
    assert google["details"]["calendars_count"] == 1


async def test_force_refresh_and_health_checks_bypass_cache(db, integrations):
    clock = FakeClock()
    health = IntegrationHealthService(cache_seconds=300, clock=clock)

    first = await health.get_health_report(db, integrations)
    forced = await health.get_health_report(db, integrations, force_refresh=True)
    assert forced is not first

    results = await health.perform_health_checks(db, integrations)
    assert results["onedrive"] == {"healthy": False, "error": "Not connected"}
    after_check = await health.get_health_report(db, integrations)
    assert after_check is not forced


async def test_health_endpoint_requires_admin(client):
    response = await client.get("/api/admin/integrations/health")
    assert response.status_code == 401


async def test_health_endpoint(admin_client):
    response = await admin_client.get("/api/admin/integrations/health")
    assert response.status_code == 200
    assert len(response.json()["integrations"]) == 2
