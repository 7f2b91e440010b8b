from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

TITLE = "Fund the community treasury"
DESCRIPTION = "Allocate 5% of protocol fees to the community treasury each epoch."


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, executor) -> TestClient:
    from aurumfox.api import app as api_app

    monkeypatch.setattr(api_app, "build_executor", lambda: executor)
    return TestClient(api_app.create_app(boot_runtime=True))


def _create(client: TestClient, creator: str) -> dict:
    r = client.post(
        "/v1/dao/proposals",
        json={"title": f"  {TITLE}  ", "description": DESCRIPTION, "creatorWallet": creator},
    )
    assert r.status_code == 201, r.text
    return r.json()["proposal"]


def test_create_and_fetch(client: TestClient, clock, wallet) -> None:
    p = _create(client, wallet(1))
    assert p["title"] == TITLE
    assert p["status"] == "active"
    assert p["votingOpen"] is True
    assert p["votesFor"] == 0 and p["votesAgainst"] == 0
    assert p["voters"] == []
    assert p["expiresAt"] - p["createdAt"] == 7 * 86_400_000

    r = client.get(f"/v1/dao/proposals/{p['id']}")
    assert r.status_code == 200
    assert r.json()["proposal"]["id"] == p["id"]


def test_create_reports_every_bad_field(client: TestClient) -> None:
    r = client.post("/v1/dao/proposals", json={"title": "abc", "description": "short", "creatorWallet": "nope"})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "validation_error"
    assert set(err["details"]["fields"]) == {"title", "description", "creatorWallet"}


def test_vote_flow(client: TestClient, wallet) -> None:
    p = _create(client, wallet(1))

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "for", "voterWallet": wallet(2)})
    assert r.status_code == 200
    assert r.json()["proposal"]["votesFor"] == 1

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "against", "voterWallet": wallet(3)})
    assert r.json()["proposal"]["votesAgainst"] == 1
    assert sorted(r.json()["proposal"]["voters"]) == sorted([wallet(2), wallet(3)])

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "against", "voterWallet": wallet(2)})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "duplicate_vote"


def test_vote_rejects_bad_input(client: TestClient, wallet) -> None:
    p = _create(client, wallet(1))

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "maybe", "voterWallet": wallet(2)})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_vote_type"

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "for", "voterWallet": "bad"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_wallet"

    r = client.post("/v1/dao/vote", json={"proposalId": "0" * 32, "voteType": "for", "voterWallet": wallet(2)})
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Proposal not found."


def test_expired_proposal_closes_on_vote(client: TestClient, clock, wallet) -> None:
    p = _create(client, wallet(1))
    clock.now = p["expiresAt"]

    listed = client.get("/v1/dao/proposals").json()["proposals"]
    assert listed[0]["status"] == "active"
    assert listed[0]["votingOpen"] is False

    r = client.post("/v1/dao/vote", json={"proposalId": p["id"], "voteType": "for", "voterWallet": wallet(2)})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "voting_closed"

    got = client.get(f"/v1/dao/proposals/{p['id']}").json()["proposal"]
    assert got["status"] == "completed"
    assert got["votesFor"] == 0


def test_list_is_newest_first_and_limited(client: TestClient, clock, wallet) -> None:
    ids = []
    for i in range(3):
        ids.append(_create(client, wallet(i + 1))["id"])
        clock.advance(1_000)

    r = client.get("/v1/dao/proposals")
    assert [p["id"] for p in r.json()["proposals"]] == list(reversed(ids))

    r = client.get("/v1/dao/proposals", params={"limit": "1"})
    assert [p["id"] for p in r.json()["proposals"]] == [ids[-1]]

    r = client.get("/v1/dao/proposals", params={"limit": "junk"})
    assert len(r.json()["proposals"]) == 3


def test_sweep_endpoint(client: TestClient, clock, wallet) -> None:
    _create(client, wallet(1))
    _create(client, wallet(2))

    assert client.post("/v1/dao/sweep").json() == {"ok": True, "completed": 0}

    clock.advance_days(8)
    assert client.post("/v1/dao/sweep").json() == {"ok": True, "completed": 2}
    statuses = {p["status"] for p in client.get("/v1/dao/proposals").json()["proposals"]}
    assert statuses == {"completed"}
