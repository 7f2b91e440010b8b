from __future__ import annotations

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient

from aurumfox.crypto.wallet import canonical_action_message


def _keypair():
    sk = Ed25519PrivateKey.generate()
    pk = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return sk, base58.b58encode(pk).decode("ascii")


def _sign(sk: Ed25519PrivateKey, action: str, fields: dict) -> str:
    return base58.b58encode(sk.sign(canonical_action_message(action, fields))).decode("ascii")


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, executor) -> TestClient:
    from aurumfox.api import app as api_app

    monkeypatch.setenv("AFOX_REQUIRE_SIGNATURES", "1")
    monkeypatch.setattr(api_app, "build_executor", lambda: executor)
    return TestClient(api_app.create_app(boot_runtime=True))


def test_missing_signature_is_401(client: TestClient) -> None:
    _sk, addr = _keypair()
    r = client.post("/v1/staking/stake", json={"walletAddress": addr, "amount": 10})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "signature_missing"


def test_wrong_signer_is_403(client: TestClient) -> None:
    _sk, addr = _keypair()
    other, _ = _keypair()
    sig = _sign(other, "stake", {"walletAddress": addr, "amount": 10})
    r = client.post("/v1/staking/stake", json={"walletAddress": addr, "amount": 10, "signature": sig})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "signature_invalid"


def test_signature_binds_fields(client: TestClient) -> None:
    sk, addr = _keypair()
    sig = _sign(sk, "stake", {"walletAddress": addr, "amount": 10})
    r = client.post("/v1/staking/stake", json={"walletAddress": addr, "amount": 11, "signature": sig})
    assert r.status_code == 403


def test_valid_signature_is_accepted(client: TestClient) -> None:
    sk, addr = _keypair()
    sig = _sign(sk, "stake", {"walletAddress": addr, "amount": 10})
    r = client.post("/v1/staking/stake", json={"walletAddress": addr, "amount": 10, "signature": sig})
    assert r.status_code == 200
    assert r.json()["user"]["stakedAmount"] == 10.0


def test_vote_signature(client: TestClient) -> None:
    sk, addr = _keypair()
    fields = {
        "title": "Signed proposal title",
        "description": "A proposal created with a wallet signature attached.",
        "creatorWallet": addr,
    }
    r = client.post("/v1/dao/proposals", json={**fields, "signature": _sign(sk, "create-proposal", fields)})
    assert r.status_code == 201
    pid = r.json()["proposal"]["id"]

    vote = {"proposalId": pid, "voteType": "for", "voterWallet": addr}
    r = client.post("/v1/dao/vote", json={**vote, "signature": _sign(sk, "vote", vote)})
    assert r.status_code == 200
    assert r.json()["proposal"]["votesFor"] == 1


def test_reads_stay_open(client: TestClient) -> None:
    _sk, addr = _keypair()
    assert client.get(f"/v1/staking/{addr}").status_code == 200
    assert client.get("/v1/dao/proposals").status_code == 200
