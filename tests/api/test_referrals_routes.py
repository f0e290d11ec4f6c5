from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from referral_attribution.api.routes.referrals_helpers import _raise_for_failure
from referral_attribution.core.config import Settings
from referral_attribution.main import create_app
from referral_attribution.referrals.results import ReferralResult
from referral_attribution.store.memory import InMemoryReferralStore


@pytest.fixture
def client() -> TestClient:
    app = create_app(
        settings=Settings(SHORT_LINK_BASE_URL="https://links.test/"),
        store=InMemoryReferralStore(),
    )
    return TestClient(app, raise_server_exceptions=False)


def _create_link(client: TestClient, owner_user_id: str = "U1") -> dict:
    response = client.post(
        "/referrals/links",
        json={"owner_user_id": owner_user_id, "campaign": "promo"},
    )
    assert response.status_code == 201
    return response.json()


def _attribute(client: TestClient, device_id: str, referral_code: str) -> dict:
    response = client.post(
        "/referrals/attribute",
        json={"device_id": device_id, "referral_code": referral_code, "platform": "ios"},
    )
    assert response.status_code == 200
    return response.json()


def test_create_link_returns_created_link(client: TestClient) -> None:
    payload = _create_link(client)

    assert payload["owner_user_id"] == "U1"
    assert payload["campaign"] == "promo"
    assert payload["short_url"] == (
        f"https://links.test/i/{payload['referral_code']}?utm_source=promo"
    )

    lookup = client.get("/referrals/users/U1/link")
    assert lookup.status_code == 200
    assert lookup.json()["referral_code"] == payload["referral_code"]


def test_missing_user_link_is_404(client: TestClient) -> None:
    response = client.get("/referrals/users/nobody/link")

    assert response.status_code == 404
    assert response.json()["detail"] == {
        "code": "E_NOT_FOUND",
        "message": "Referral not found.",
    }


def test_full_flow_over_http(client: TestClient) -> None:
    code = _create_link(client)["referral_code"]
    attribution = _attribute(client, "D1", code)

    assert attribution["device_id"] == "D1"
    assert attribution["referral_code"] == code

    repeat = client.post(
        "/referrals/attribute",
        json={"device_id": "D1", "referral_code": code, "platform": "android"},
    )
    assert repeat.status_code == 409
    assert repeat.json()["detail"]["code"] == "E_ALREADY_ATTRIBUTED"

    claim = client.post(
        "/referrals/claim",
        json={"user_id": "U2", "attribution_token": attribution["token"], "device_id": "D1"},
    )
    assert claim.status_code == 200
    assert claim.json() == {
        "success": True,
        "message": "Reward processed successfully.",
        "referral_code": code,
    }

    second_token = _attribute(client, "D3", code)["token"]
    again = client.post(
        "/referrals/claim",
        json={"user_id": "U2", "attribution_token": second_token},
    )
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "E_ALREADY_CLAIMED"


def test_self_referral_is_forbidden(client: TestClient) -> None:
    code = _create_link(client, owner_user_id="U1")["referral_code"]
    token = _attribute(client, "D1", code)["token"]

    response = client.post("/referrals/claim", json={"user_id": "U1", "attribution_token": token})

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "E_SELF_REFERRAL"


def test_unknown_code_and_garbage_token(client: TestClient) -> None:
    unknown = client.post(
        "/referrals/attribute",
        json={"device_id": "D2", "referral_code": "ZZZZZZZ", "platform": "ios"},
    )
    garbage = client.post(
        "/referrals/claim",
        json={"user_id": "U2", "attribution_token": "garbage"},
    )

    assert unknown.status_code == 404
    assert garbage.status_code == 422
    assert garbage.json()["detail"]["code"] == "E_INVALID_TOKEN"


@pytest.mark.parametrize(
    "body",
    [
        {"device_id": "", "referral_code": "ABCDE", "platform": "ios"},
        {"device_id": "D1", "referral_code": "ABCD", "platform": "ios"},
        {"device_id": "D1", "referral_code": "A" * 21, "platform": "ios"},
        {"device_id": "D1", "referral_code": "ABCDE", "platform": "windows"},
    ],
)
def test_attribute_request_validation(client: TestClient, body: dict) -> None:
    response = client.post("/referrals/attribute", json=body)

    assert response.status_code == 422


def test_blank_owner_maps_to_invalid_input(client: TestClient) -> None:
    response = client.post("/referrals/links", json={"owner_user_id": "   "})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "E_INVALID_INPUT"


def test_correlation_id_is_echoed(client: TestClient) -> None:
    supplied = client.get("/live", headers={"X-Correlation-ID": "corr-123"})
    generated = client.get("/live")

    assert supplied.headers["X-Correlation-ID"] == "corr-123"
    assert len(generated.headers["X-Correlation-ID"]) == 32


def test_unexpected_failure_returns_generic_error(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
) -> None:
    async def _broken_claim(*args, **kwargs):
        del args, kwargs
        raise RuntimeError("store key referral_attributions/D1 corrupted")

    monkeypatch.setattr(client.app.state.referral_service, "claim", _broken_claim)

    response = client.post("/referrals/claim", json={"user_id": "U2", "attribution_token": "x"})
    traced = client.post(
        "/referrals/claim",
        json={"user_id": "U2", "attribution_token": "x"},
        headers={"X-Correlation-ID": "corr-500"},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "An unexpected error occurred"}
    assert len(response.headers["X-Correlation-ID"]) == 32
    assert traced.status_code == 500
    assert traced.headers["X-Correlation-ID"] == "corr-500"


def test_attribute_returns_onboarding_metadata(client: TestClient) -> None:
    code = _create_link(client)["referral_code"]

    response = client.post(
        "/referrals/attribute",
        json={
            "device_id": "D1",
            "referral_code": code.lower(),
            "platform": "android",
            "app_version": "1.0.0",
            "locale": "en-US",
            "timezone": "UTC",
        },
    )

    assert response.status_code == 200
    assert response.json()["onboarding"] == {
        "device_id": "D1",
        "platform": "android",
        "app_version": "1.0.0",
        "locale": "en-US",
        "timezone": "UTC",
    }


def test_list_invites_over_http(client: TestClient) -> None:
    code = _create_link(client, owner_user_id="U1")["referral_code"]
    claimed = _attribute(client, "D1", code)
    _attribute(client, "D2", code)
    claim = client.post(
        "/referrals/claim",
        json={"user_id": "U2", "attribution_token": claimed["token"]},
    )
    assert claim.status_code == 200

    everything = client.get("/referrals/users/U1/invites")
    completed = client.get("/referrals/users/U1/invites", params={"status": "completed"})
    unknown = client.get("/referrals/users/U1/invites", params={"status": "rewarded"})

    assert everything.status_code == 200
    assert everything.json()["referrer_user_id"] == "U1"
    assert {invite["device_id"] for invite in everything.json()["invites"]} == {"D1", "D2"}
    assert completed.status_code == 200
    completed_invites = completed.json()["invites"]
    assert len(completed_invites) == 1
    completed_invites[0].pop("occurred_at")
    assert completed_invites == [
        {
            "referral_code": code,
            "status": "completed",
            "device_id": "D1",
            "invitee_user_id": "U2",
            "platform": "ios",
            "reward_issued": True,
        }
    ]
    assert unknown.status_code == 200
    assert unknown.json()["invites"] == []


def test_raise_for_failure_refuses_successful_result() -> None:
    with pytest.raises(RuntimeError):
        _raise_for_failure(ReferralResult.success("ok"))
