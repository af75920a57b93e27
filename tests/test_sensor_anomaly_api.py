from __future__ import annotations

BASE = "/api/v1/sensor-anomaly"

CANONICAL = {"mq4": 65, "mq136": 20, "mq137": 10}

CO2 = {
    "sensor_type": "CO2",
    "sensor_name": "Carbon dioxide sensor",
    "unit": "ppm",
    "normal_min": 400,
    "normal_max": 1000,
    "warning_min": 350,
    "warning_max": 1500,
    "critical_min": 300,
    "critical_max": 2500,
    "spike_threshold": 200,
}


def _evaluate(client, payload):
    response = client.post(f"{BASE}/evaluate", json=payload)
    assert response.status_code == 200, response.get_json()
    return response.get_json()["data"]


# ---------------------------------------------------------------------------
# Health and routing
# ---------------------------------------------------------------------------


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True
    assert payload["error"] is None
    assert payload["data"]["status"] == "ok"
    assert payload["data"]["database"] is True


def test_health_database_counts_seeded_thresholds(client):
    data = client.get("/api/v1/health/database").get_json()["data"]
    assert data["tables"]["SensorThreshold"] == 3
    assert data["tables"]["SensorAnomalyAlert"] == 0


def test_unversioned_prefix_is_rewritten(client):
    response = client.get("/api/health/ping")
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "ok"

    legacy = client.get("/api/sensor-anomaly/thresholds")
    assert legacy.status_code == 200


def test_unknown_api_route_uses_error_envelope(client):
    response = client.get("/api/v1/does-not-exist")
    assert response.status_code == 404
    payload = response.get_json()
    assert payload["ok"] is False
    assert payload["data"] is None
    assert payload["error"]["message"]


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def test_evaluate_flat_payload(client):
    data = _evaluate(client, CANONICAL)

    assert data["alert_count"] == 1
    alert = data["alerts"][0]
    assert alert["sensor_type"] == "mq4"
    assert alert["alert_type"] == "threshold_high"
    assert alert["severity"] == "critical"
    assert alert["threshold_value"] == 60.0
    assert alert["farmno"] == "1"
    assert alert["zone"] == "A"
    assert data["notifications"] == [{"send": True, "reason": "deliver", "channels": ["browser", "sound"]}]


def test_evaluate_nested_payload_follow_up_drop(client):
    _evaluate(client, CANONICAL)
    data = _evaluate(client, {"readings": {"mq4": 30}, "location": {"farmno": "1", "zone": "A"}})

    assert [a["alert_type"] for a in data["alerts"]] == ["sudden_drop"]
    assert data["alerts"][0]["previous_value"] == 65.0
    assert data["alerts"][0]["severity"] == "critical"


def test_evaluate_repeat_is_suppressed(client):
    _evaluate(client, CANONICAL)
    data = _evaluate(client, CANONICAL)
    assert data["alert_count"] == 0
    assert data["suppressed"] == 1


def test_evaluate_cooldown_expires(client, clock):
    _evaluate(client, CANONICAL)
    clock.advance(minutes=5)
    assert _evaluate(client, CANONICAL)["alert_count"] == 1


def test_evaluate_reports_skipped_sensors(client):
    data = _evaluate(client, {"mq4": 20, "co2": 900, "mq136": "bad"})
    assert data["alert_count"] == 0
    assert sorted(data["skipped"]) == ["co2", "mq136"]


def test_evaluate_rejects_empty_batches(client):
    flat = client.post(f"{BASE}/evaluate", json={"farmno": "1"})
    assert flat.status_code == 400
    assert flat.get_json()["ok"] is False

    nested = client.post(f"{BASE}/evaluate", json={"readings": {}})
    assert nested.status_code == 400
    assert nested.get_json()["details"]["errors"]


def test_evaluate_rejects_non_object_location(client):
    response = client.post(f"{BASE}/evaluate", json={"mq4": 65, "location": "farm-1"})
    assert response.status_code == 400
    assert response.get_json()["details"] == {"field": "location"}
    assert client.get(f"{BASE}/alerts").get_json()["data"]["alerts"] == []


def test_test_alert_defaults(client):
    response = client.post(f"{BASE}/test-alert", json={})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["alert_count"] == 1
    assert data["alerts"][0]["sensor_type"] == "mq4"
    assert data["alerts"][0]["severity"] == "high"


def test_state_snapshot(client):
    _evaluate(client, CANONICAL)
    data = client.get(f"{BASE}/state").get_json()["data"]
    assert data["history"] == {"mq4": 65.0, "mq136": 20.0, "mq137": 10.0}
    assert list(data["cooldowns"]) == ["mq4_threshold_high"]
    assert data["cooldown_minutes"] == 5


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def test_list_alerts(client):
    _evaluate(client, CANONICAL)
    # History is per sensor type, so farm 2 sees the mq136 jump from 20 as well.
    second = _evaluate(client, {"mq136": 80, "farmno": "2", "zone": "B"})
    assert [a["alert_type"] for a in second["alerts"]] == ["threshold_high", "sudden_spike"]
    assert second["alerts"][1]["previous_value"] == 20.0

    data = client.get(f"{BASE}/alerts").get_json()["data"]
    assert [a["sensor_type"] for a in data["alerts"]] == ["mq4"]
    assert data["unresolved_count"] == 1
    assert data["pagination"] == {"limit": 50, "offset": 0, "returned": 1, "has_more": False}

    other = client.get(f"{BASE}/alerts", query_string={"farmno": "2", "zone": "B"}).get_json()["data"]
    assert [a["sensor_type"] for a in other["alerts"]] == ["mq136", "mq136"]


def test_list_alerts_filters(client):
    _evaluate(client, {"mq4": 95})

    critical = client.get(f"{BASE}/alerts", query_string={"severity": "critical"}).get_json()["data"]
    assert len(critical["alerts"]) == 2
    other_sensor = client.get(f"{BASE}/alerts", query_string={"sensor_type": "mq136"}).get_json()["data"]
    assert other_sensor["alerts"] == []


def test_list_alerts_rejects_bad_query(client):
    assert client.get(f"{BASE}/alerts", query_string={"severity": "urgent"}).status_code == 400
    assert client.get(f"{BASE}/alerts", query_string={"limit": "0"}).status_code == 400
    assert client.get(f"{BASE}/alerts", query_string={"limit": "many"}).status_code == 400
    assert client.get(f"{BASE}/alerts", query_string={"resolved": "maybe"}).status_code == 400


def test_get_alert(client):
    alert_id = _evaluate(client, CANONICAL)["alerts"][0]["id"]
    response = client.get(f"{BASE}/alerts/{alert_id}")
    assert response.status_code == 200
    assert response.get_json()["data"]["id"] == alert_id

    missing = client.get(f"{BASE}/alerts/9999")
    assert missing.status_code == 404
    assert missing.get_json()["ok"] is False


def test_resolve_alert(client):
    alert_id = _evaluate(client, CANONICAL)["alerts"][0]["id"]

    first = client.put(f"{BASE}/alerts/{alert_id}/resolve")
    assert first.status_code == 200
    assert first.get_json()["data"] == {"id": alert_id, "outcome": "resolved", "rows_changed": 1}

    second = client.put(f"{BASE}/alerts/{alert_id}/resolve")
    assert second.get_json()["data"]["outcome"] == "already_resolved"
    assert second.get_json()["data"]["rows_changed"] == 0

    assert client.put(f"{BASE}/alerts/9999/resolve").status_code == 404


def test_resolve_all_and_unresolved_count(client):
    _evaluate(client, {"mq4": 95})
    count = client.get(f"{BASE}/alerts/unresolved-count").get_json()["data"]
    assert count == {"unresolved_count": 2}

    response = client.put(f"{BASE}/alerts/resolve-all", json={"farmno": "1", "zone": "A"})
    assert response.status_code == 200
    assert response.get_json()["data"] == {"resolved_count": 2}
    assert client.get(f"{BASE}/alerts/unresolved-count").get_json()["data"]["unresolved_count"] == 0


def test_stats(client):
    _evaluate(client, {"mq4": 95})
    data = client.get(f"{BASE}/stats", query_string={"period": "30d"}).get_json()["data"]
    assert data["period"] == "30d"
    assert data["summary"]["total_alerts"] == 2
    assert data["summary"]["critical_alerts"] == 2
    assert data["daily"] == [{"date": "2026-01-05", "alert_count": 2, "critical_count": 2}]

    fallback = client.get(f"{BASE}/stats", query_string={"period": "1y"}).get_json()["data"]
    assert fallback["period"] == "7d"


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------


def test_list_thresholds(client):
    data = client.get(f"{BASE}/thresholds").get_json()["data"]
    assert [t["sensor_type"] for t in data] == ["mq136", "mq137", "mq4"]


def test_seed_defaults_is_idempotent(client):
    response = client.post(f"{BASE}/thresholds/defaults")
    assert response.status_code == 200
    assert response.get_json()["data"] == {"inserted": 0}


def test_threshold_crud(client):
    created = client.post(f"{BASE}/thresholds", json=CO2)
    assert created.status_code == 201
    assert created.get_json()["data"]["sensor_type"] == "co2"

    assert client.post(f"{BASE}/thresholds", json=CO2).status_code == 409

    updated = client.put(f"{BASE}/thresholds/co2", json={"normal_max": 1200, "unit": "ignored"})
    assert updated.status_code == 200
    assert updated.get_json()["data"]["normal_max"] == 1200.0
    assert updated.get_json()["data"]["unit"] == "ppm"

    fetched = client.get(f"{BASE}/thresholds/co2").get_json()["data"]
    assert fetched["normal_max"] == 1200.0

    assert client.delete(f"{BASE}/thresholds/co2").status_code == 200
    assert client.get(f"{BASE}/thresholds/co2").status_code == 404
    assert client.delete(f"{BASE}/thresholds/co2").status_code == 404


def test_new_threshold_is_used_by_evaluation(client):
    client.post(f"{BASE}/thresholds", json=CO2)
    data = _evaluate(client, {"co2": 1100})
    assert [(a["alert_type"], a["severity"]) for a in data["alerts"]] == [("threshold_high", "medium")]


def test_threshold_validation_errors(client):
    missing = client.post(f"{BASE}/thresholds", json={"sensor_type": "co2"})
    assert missing.status_code == 400
    assert missing.get_json()["details"]["errors"]

    bad_bands = client.put(f"{BASE}/thresholds/mq4", json={"normal_max": 50})
    assert bad_bands.status_code == 400
    assert bad_bands.get_json()["details"]["problems"]

    nothing = client.put(f"{BASE}/thresholds/mq4", json={"sensor_name": "x"})
    assert nothing.status_code == 400

    assert client.put(f"{BASE}/thresholds/co2", json={"normal_max": 10}).status_code == 404


# ---------------------------------------------------------------------------
# Delivery preferences
# ---------------------------------------------------------------------------


def test_settings_defaults(client):
    data = client.get(f"{BASE}/settings").get_json()["data"]
    assert data["user_id"] == 1
    assert data["browser_enabled"] is True
    assert data["email_enabled"] is False
    assert data["quiet_hours_start"] == "22:00"


def test_update_settings(client):
    response = client.put(f"{BASE}/settings", json={"critical_only": True, "quiet_hours_end": "06:30"})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["critical_only"] is True
    assert data["quiet_hours_end"] == "06:30"


def test_update_settings_validation(client):
    assert client.put(f"{BASE}/settings", json={"quiet_hours_start": "7pm"}).status_code == 400
    assert client.put(f"{BASE}/settings", json={"theme": "dark"}).status_code == 400


def test_critical_only_gates_notifications(client):
    client.put(f"{BASE}/settings", json={"critical_only": True})
    data = _evaluate(client, {"mq4": 50})
    assert data["alerts"][0]["severity"] == "high"
    assert data["notifications"] == [{"send": False, "reason": "critical_only", "channels": []}]
