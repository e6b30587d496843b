BASE = "/api/v1/governance"


def _create_proposal(client, **overrides):
    body = {"proposerOrgId": 7, "contentId": "cid123", "startTime": 1000, "endTime": 2000}
    body.update(overrides)
    return client.post(f"{BASE}/proposals", json=body)


def test_proposal_flow(client, ledger):
    ledger.now = 500
    r = _create_proposal(client)
    assert r.status_code == 200, r.text
    pid = r.json()["proposalId"]

    r = client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 3, "choice": 1})
    assert r.status_code == 409
    assert r.json()["error"] == "ledger_rejected"
    assert r.json()["outcome"] == "known"

    ledger.now = 1500
    r = client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 3, "choice": 1})
    assert r.status_code == 200
    assert r.json()["action"] == "vote"
    assert r.json()["subjectId"] == pid

    assert client.get(f"{BASE}/proposals/{pid}").json()["state"] == "Active"

    ledger.now = 2000
    r = client.post(f"{BASE}/proposals/{pid}/finalize")
    assert r.status_code == 200

    proposal = client.get(f"{BASE}/proposals/{pid}").json()
    assert proposal["state"] == "Finalized"
    assert proposal["passed"] is True
    assert proposal["tally"]["forVotes"] == 1

    r = client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 4, "choice": 2})
    assert r.status_code == 409


def test_invalid_window_is_422(client, ledger):
    r = _create_proposal(client, startTime=2000, endTime=2000)
    assert r.status_code == 422
    assert r.json()["field"] == "endTime"
    assert ledger.calls == 0


def test_invalid_choice_is_422(client, ledger):
    r = client.post(f"{BASE}/proposals/1/votes", json={"voterOrgId": 3, "choice": 4})
    assert r.status_code == 422
    assert r.json()["field"] == "choice"
    assert ledger.calls == 0


def test_missing_proposal_id_is_unknown_outcome(client, ledger):
    ledger.omit_events = True
    r = _create_proposal(client)
    assert r.status_code == 502
    assert r.json()["outcome"] == "unknown"
    assert r.json()["transactionId"]


def test_unknown_proposal_is_404(client):
    assert client.get(f"{BASE}/proposals/99").status_code == 404
    assert client.get(f"{BASE}/proposals/99/tally").status_code == 404


def test_tally_endpoint(client, ledger):
    for name in ("A", "B"):
        client.post(f"{BASE}/organizations", json={"name": name})
    pid = _create_proposal(client, startTime=0, endTime=10_000).json()["proposalId"]
    client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 1, "choice": 2})

    tally = client.get(f"{BASE}/proposals/{pid}/tally").json()
    assert tally == {"forVotes": 0, "againstVotes": 1, "abstainVotes": 0, "eligibleCount": 2, "totalVotes": 1}


def test_organization_endpoints(client):
    r = client.post(f"{BASE}/organizations", json={"name": "City Hospital"})
    assert r.status_code == 200
    org_id = r.json()["orgId"]
    assert r.json()["manager"] == "0x" + "0" * 40

    r = client.post(f"{BASE}/organizations/{org_id}/active", json={"active": False})
    assert r.status_code == 200
    assert r.json()["action"] == "deactivate"

    r = client.post(f"{BASE}/organizations", json={"name": ""})
    assert r.status_code == 422


def test_rejected_vote_releases_idempotency_key(client, ledger):
    pid = _create_proposal(client, startTime=0, endTime=1000).json()["proposalId"]
    headers = {"Idempotency-Key": "vote-1"}

    ledger.now = 1000
    assert client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 3, "choice": 1}, headers=headers).status_code == 409

    # a rejection is a known outcome, so the same key may be retried
    r = client.post(f"{BASE}/proposals/{pid}/votes", json={"voterOrgId": 3, "choice": 1}, headers=headers)
    assert r.status_code == 409
    assert r.json()["error"] == "ledger_rejected"


def test_idempotent_finalize_replay(client, ledger):
    pid = _create_proposal(client, startTime=0, endTime=100).json()["proposalId"]
    headers = {"Idempotency-Key": "fin-1"}

    first = client.post(f"{BASE}/proposals/{pid}/finalize", headers=headers)
    second = client.post(f"{BASE}/proposals/{pid}/finalize", headers=headers)

    assert first.status_code == 200
    assert second.json() == first.json()
    assert len([s for s in ledger.submissions if s[0] == "finalize"]) == 1
