import pytest

from airgradient2mqtt.health import HealthReporter


@pytest.mark.asyncio
async def test_health_reporter_snapshot():
    reporter = HealthReporter()

    await reporter.update("mqtt", True)
    await reporter.update("cloud", False, "stopped")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    component_list = snapshot.get("components", [])
    assert isinstance(component_list, list)
    components = {item["name"]: item for item in component_list}
    assert components["mqtt"]["healthy"] is True
    assert components["cloud"]["healthy"] is False
    assert components["cloud"]["detail"] == "stopped"
    assert "pendingCommands" not in snapshot


@pytest.mark.asyncio
async def test_health_reporter_latest_update_wins():
    reporter = HealthReporter(lambda: {"dev": 3})

    await reporter.update("mqtt", False, "disconnected (rc=7)")
    await reporter.update("mqtt", True)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert len(snapshot["components"]) == 1
    assert snapshot["pendingCommands"] == {"dev": 3}
