"""Tests for the HTTP API."""

import httpx
from fastapi.testclient import TestClient

from nutritrack.api.app import create_app
from nutritrack.domain.errors import (
    AuthExpired,
    CommittedResponseUnreadable,
    RemoteUnavailable,
)
from nutritrack.domain.phases import AuthorizationPhase, PhaseState


def test_health_endpoint(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_log_consumption_returns_resolved_nutrients(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/consumption",
        json={
            "ingredient_id": "ing-oats",
            "quantity": 50,
            "unit": "g",
            "consumed_at": "2024-05-01T07:45:00Z",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "ingredient"
    assert body["data_quality"] == "complete"
    assert body["nutrients"]["energy"] == 190.0
    assert body["warnings"] == []


def test_log_consumption_rejects_ambiguous_reference(container, remote_store) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/consumption",
        json={"ingredient_id": "ing-oats", "quantity": 5, "dish_id": "dish-porridge"},
    )

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"
    assert remote_store.calls == []


def test_expired_credential_returns_401(container, remote_store, session) -> None:
    remote_store.fail_with = AuthExpired("token expired")
    client = TestClient(create_app(container))

    response = client.post(
        "/consumption", json={"dish_id": "dish-porridge", "servings": 1}
    )

    assert response.status_code == 401
    assert not session.is_active


def test_remote_outage_returns_502(container, remote_store) -> None:
    remote_store.fail_with = RemoteUnavailable("remote down", status_code=503)
    client = TestClient(create_app(container))

    response = client.delete("/consumption/log-1")

    assert response.status_code == 502


def test_delete_consumption(container, remote_store, reconciler) -> None:
    client = TestClient(create_app(container))
    created = client.post(
        "/consumption", json={"ingredient_id": "ing-milk", "quantity": 250}
    ).json()

    response = client.delete(f"/consumption/{created['id']}")

    assert response.status_code == 200
    assert response.json() == {"deleted": created["id"], "warnings": []}
    assert reconciler.find(created["id"]) is None


def test_phase_flow(container, health_store) -> None:
    client = TestClient(create_app(container))

    assert client.get("/health-record/phase").json()["phase"] == "NONE"
    skipped = client.post("/health-record/phase", json={"phase": "ENHANCED"})
    assert skipped.status_code == 409

    granted = client.post("/health-record/phase", json={"phase": "core"})
    assert granted.status_code == 200
    assert granted.json()["display_name"] == "Basic Tracking"

    suggestion = client.get("/health-record/suggestion").json()
    assert suggestion == {"suggest": False, "next_phase": None}

    health_store.grant = False
    denied = client.post("/health-record/phase", json={"phase": "ENHANCED"})
    assert denied.status_code == 403
    assert client.get("/health-record/phase").json()["phase"] == "CORE"


def test_unknown_phase_is_rejected(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/health-record/phase", json={"phase": "platinum"})

    assert response.status_code == 422


def test_suggestion_is_offered_and_recorded(container, phase_repository) -> None:
    phase_repository.states["default"] = PhaseState(phase=AuthorizationPhase.CORE)
    client = TestClient(create_app(container))

    assert client.get("/health-record/suggestion").json() == {
        "suggest": True,
        "next_phase": "ENHANCED",
    }

    shown = client.post("/health-record/suggestion/shown")

    assert shown.json()["last_suggestion_at"] is not None
    assert client.get("/health-record/suggestion").json()["suggest"] is False


def test_profile_endpoint(container, health_store, phase_repository) -> None:
    client = TestClient(create_app(container))
    assert client.get("/health-record/profile").json() == {"profile": None}

    phase_repository.states["default"] = PhaseState(phase=AuthorizationPhase.CORE)
    health_store.profile = {
        "date_of_birth": "1990-01-01",
        "biological_sex": "male",
        "height": 1.8,
        "body_mass": 80,
    }
    body = client.get("/health-record/profile", params={"activity": "sedentary"}).json()

    assert body["profile"]["biological_sex"] == "male"
    assert body["profile"]["recommended_calories"] == body["profile"]["bmr"] * 1.2
    assert client.get(
        "/health-record/profile", params={"activity": "marathon"}
    ).status_code == 422


def test_summary_and_recommendations(container, remote_store) -> None:
    remote_store.recommendations = [
        {"id": "d9", "name": "Miso soup", "freshnessScore": 0.9}
    ]
    client = TestClient(create_app(container))
    client.post("/consumption", json={"dish_id": "dish-porridge", "servings": 1})

    today = client.get("/summary/today").json()
    week = client.get("/summary/week").json()
    feed = client.get("/recommendations", params={"days": 3, "limit": 2}).json()

    assert today["log_count"] == 1
    assert today["nutrients"]["energy"] == 310.0
    assert len(week["daily"]) == 7
    assert week["variety_score"] == 0.05
    assert feed["recommendations"][0]["dish"]["name"] == "Miso soup"
    assert "fetch_recommendations:3:2" in remote_store.calls


def test_catalog_reload(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/catalog/reload")

    assert response.json() == {"ingredients": 2, "dishes": 1}


def test_profile_outage_returns_502(container, health_store, phase_repository) -> None:
    phase_repository.states["default"] = PhaseState(phase=AuthorizationPhase.CORE)
    health_store.fail_reads_with = httpx.HTTPStatusError(
        "Service Unavailable",
        request=httpx.Request("GET", "https://health.test/profile/height/latest"),
        response=httpx.Response(503),
    )
    client = TestClient(create_app(container))

    response = client.get("/health-record/profile")

    assert response.status_code == 502
    assert response.json()["error"] == "HealthStoreUnavailable"


def test_unreadable_committed_log_returns_502(container, remote_store) -> None:
    remote_store.fail_with = CommittedResponseUnreadable(
        "The consumption log was saved remotely but the response could not be read"
    )
    client = TestClient(create_app(container))

    response = client.post(
        "/consumption", json={"dish_id": "dish-porridge", "servings": 1}
    )

    assert response.status_code == 502
    assert response.json()["error"] == "CommittedResponseUnreadable"


def test_sign_in_restores_session_after_expiry(container, session) -> None:
    session.invalidate()
    client = TestClient(create_app(container))
    assert client.get("/session").json() == {"active": False}

    response = client.post("/session", json={"token": "fresh-token"})

    assert response.json() == {"active": True}
    assert session.bearer_token() == "fresh-token"
    assert client.post("/session", json={"token": ""}).status_code == 422


def test_ingredient_routes(container, remote_store, reconciler) -> None:
    client = TestClient(create_app(container))

    created = client.post(
        "/ingredients",
        json={
            "name": "Tofu",
            "category": "Legumes",
            "nutrition_per_100g": {"energy": 76, "protein": 8},
        },
    )
    ingredient_id = created.json()["id"]
    renamed = client.put(f"/ingredients/{ingredient_id}", json={"name": "Silken tofu"})
    fetched = client.get(f"/ingredients/{ingredient_id}")
    deleted = client.delete(f"/ingredients/{ingredient_id}")

    assert created.status_code == 201
    assert created.json()["nutrition_per_100g"] == {"energy": 76.0, "protein": 8.0}
    assert renamed.json()["name"] == "Silken tofu"
    assert fetched.json()["category"] == "Legumes"
    assert deleted.json() == {"deleted": ingredient_id}
    assert reconciler.find(ingredient_id) is None


def test_ingredient_with_unknown_nutrient_is_rejected(container, remote_store) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/ingredients",
        json={"name": "Kale", "category": "Vegetables", "nutrition_per_100g": {"x": 1}},
    )

    assert response.status_code == 422
    assert remote_store.calls == []


def test_dish_routes(container, reconciler) -> None:
    client = TestClient(create_app(container))

    created = client.post(
        "/dishes",
        json={
            "name": "Overnight oats",
            "ingredients": [
                {"ingredient_id": "ing-oats", "quantity": 60},
                {"ingredient_id": "ing-milk", "quantity": 150, "unit": "ml"},
            ],
        },
    )
    dish_id = created.json()["id"]
    updated = client.put(f"/dishes/{dish_id}", json={"servings": 2})

    assert created.status_code == 201
    assert created.json()["servings"] == 1
    assert [line["unit"] for line in created.json()["ingredients"]] == ["g", "ml"]
    assert updated.json()["servings"] == 2
    assert client.get(f"/dishes/{dish_id}").json()["name"] == "Overnight oats"
    assert reconciler.find(dish_id).servings == 2
    rejected = client.post("/dishes", json={"name": "Soup", "servings": 0})
    assert rejected.status_code == 422


def test_consumption_history_range(container) -> None:
    client = TestClient(create_app(container))
    client.post(
        "/consumption",
        json={
            "ingredient_id": "ing-oats",
            "quantity": 40,
            "consumed_at": "2024-04-20T08:00:00Z",
        },
    )

    in_range = client.get(
        "/consumption", params={"start": "2024-04-01", "end": "2024-04-30"}
    ).json()
    out_of_range = client.get(
        "/consumption", params={"start": "2024-05-01", "end": "2024-05-31"}
    ).json()
    half_open = client.get("/consumption", params={"start": "2024-04-01"})

    assert [entry["item_id"] for entry in in_range["consumption"]] == ["ing-oats"]
    assert out_of_range == {"consumption": []}
    assert half_open.status_code == 422
