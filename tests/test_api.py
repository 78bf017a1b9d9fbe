ORGANIZER = {"X-User-Id": "org-1"}
U1 = {"X-User-Id": "u1"}
U2 = {"X-User-Id": "u2"}

SCHEMA = {"elements": [{"type": "text", "name": "answer", "isRequired": True}]}


def _setup(client):
    comp = client.post("/competitions", json={"title": "Spring Cup"}, headers=ORGANIZER).json()
    team = client.post("/teams", json={"name": "Alpha", "max_participants": 4}, headers=U1).json()
    enrollment = client.post(
        "/enrollments", json={"team_id": team["id"], "competition_id": comp["id"]}, headers=U1
    ).json()
    event = client.post(
        f"/competitions/{comp['id']}/events", json={"title": "Report", "form_schema": SCHEMA}, headers=ORGANIZER
    ).json()
    return comp, team, enrollment, event


def test_team_lifecycle(client):
    res = client.post("/teams", json={"name": "Alpha", "max_participants": 4}, headers=U1)
    assert res.status_code == 201
    team = res.json()
    assert [(m["member_id"], m["role"]) for m in team["members"]] == [("u1", "leader")]

    res = client.post(f"/teams/{team['id']}/members", json={"member_id": "u2"}, headers=U1)
    assert res.status_code == 201

    res = client.post(f"/teams/{team['id']}/members", json={"member_id": "u3"}, headers=U2)
    assert res.status_code == 403
    assert res.json() == {"error": "permission_denied", "message": "Only the team leader can add members to the team."}

    res = client.post(f"/teams/{team['id']}/members", json={"member_id": "u2"}, headers=U1)
    assert res.status_code == 409

    res = client.delete(f"/teams/{team['id']}/members/u1", headers=U1)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_operation"

    assert [t["id"] for t in client.get("/teams/user/u2/all").json()["teams"]] == [team["id"]]
    assert client.get("/teams/user/u2").json() == {"teams": []}

    res = client.post(f"/teams/{team['id']}/leader", json={"member_id": "u2"}, headers=U1)
    assert res.status_code == 200
    assert res.json()["role"] == "leader"

    assert client.delete(f"/teams/{team['id']}", headers=U1).status_code == 204
    res = client.get(f"/teams/{team['id']}")
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


def test_missing_identity_is_rejected(client):
    res = client.post("/teams", json={"name": "Alpha", "max_participants": 4})
    assert res.status_code == 403


def test_enrollment_routes(client):
    comp, team, enrollment, _ = _setup(client)
    assert enrollment["status"] == "registered"

    res = client.post("/enrollments", json={"team_id": team["id"], "competition_id": comp["id"]}, headers=U1)
    assert res.status_code == 409

    res = client.put(f"/enrollments/{enrollment['id']}", json={"status": "finals"}, headers=ORGANIZER)
    assert res.json()["status"] == "finals"
    res = client.put(f"/enrollments/{enrollment['id']}", json={"status": "registered"}, headers=ORGANIZER)
    assert res.json()["status"] == "registered"
    res = client.put(f"/enrollments/{enrollment['id']}", json={"status": "registered"}, headers=U1)
    assert res.status_code == 403

    listed = client.get("/enrollments/user/u1").json()["enrollments"]
    assert listed[0]["team_name"] == "Alpha"
    assert client.get(f"/enrollments/competition/{comp['id']}").json()["enrollments"][0]["id"] == enrollment["id"]
    found = client.get(f"/enrollments/team/{team['id']}/competition/{comp['id']}").json()
    assert found["id"] == enrollment["id"]

    res = client.delete(f"/enrollments/{enrollment['id']}", headers=ORGANIZER)
    assert res.json() == {"deleted": enrollment["id"], "submissions_deleted": 0}


def test_event_routes(client):
    comp, _, _, event = _setup(client)
    base = f"/competitions/{comp['id']}/events"

    assert [e["id"] for e in client.get(base).json()["events"]] == [event["id"]]

    res = client.post(base, json={"title": "Bad", "form_schema": {"elements": [{"type": "slider", "name": "x"}]}}, headers=ORGANIZER)
    assert res.status_code == 422
    assert res.json()["error"] == "validation_error"

    res = client.patch(f"{base}/{event['id']}", json={"description": "Upload the final report"}, headers=ORGANIZER)
    assert res.status_code == 200
    assert res.json()["title"] == "Report"
    assert res.json()["description"] == "Upload the final report"

    assert client.patch(f"{base}/{event['id']}", json={"title": "x"}, headers=U1).status_code == 403
    assert client.delete(f"{base}/{event['id']}", headers=ORGANIZER).status_code == 204
    assert client.get(f"{base}/{event['id']}").status_code == 404


def test_submission_routes(client):
    comp, _, enrollment, event = _setup(client)
    base = f"/competitions/{comp['id']}/submissions"

    res = client.post(base, json={"event_id": event["id"], "submission": {"answer": "x"}}, headers=U1)
    assert res.status_code == 422

    first = client.post(
        base, json={"event_id": event["id"], "enrollment_id": enrollment["id"], "submission": {"answer": "x"}}, headers=U1
    ).json()
    wrapped = {"event_id": event["id"], "enrollment_id": enrollment["id"], "submission": '{"answer": "y"}'}
    second = client.post(
        base, json={"event_id": event["id"], "enrollment_id": enrollment["id"], "submission": wrapped}, headers=U1
    ).json()
    assert second["id"] == first["id"]
    assert second["submission"] == {"answer": "y"}

    assert client.get(base, headers=U1).status_code == 403
    assert [s["id"] for s in client.get(base, headers=ORGANIZER).json()["submissions"]] == [first["id"]]

    own = client.get(f"{base}/enrollment/{enrollment['id']}", headers=U1).json()["submissions"]
    assert [s["submission"] for s in own] == [{"answer": "y"}]

    res = client.get(f"/events/{event['id']}/submissions", params={"enrollment_id": enrollment["id"]}, headers=U1)
    assert res.json()["submission"]["id"] == first["id"]

    exported = client.get(f"/events/{event['id']}/submissions/export", headers=ORGANIZER).json()
    assert exported["submissions"][0]["answers"] == {"answer": "y"}

    res = client.patch(f"{base}/{first['id']}", json={"submission": {"answer": "z"}}, headers=U1)
    assert res.json()["submission"] == {"answer": "z"}

    assert client.delete(f"{base}/orphaned", headers=ORGANIZER).json() == {"deleted": 0}
    assert client.delete(f"{base}/{first['id']}", headers=U2).status_code == 403
    assert client.delete(f"{base}/{first['id']}", headers=U1).status_code == 204
    assert client.get(f"/events/{event['id']}/submissions", headers=ORGANIZER).json() == {"submissions": []}


def test_malformed_body_uses_error_envelope(client):
    _, _, enrollment, _ = _setup(client)

    res = client.put(f"/enrollments/{enrollment['id']}", json={"status": "champion"}, headers=ORGANIZER)
    assert res.status_code == 422
    body = res.json()
    assert set(body) == {"error", "message"}
    assert body["error"] == "validation_error"
    assert "status" in body["message"]

    res = client.post("/teams", json={"name": "Alpha"}, headers=U1)
    assert res.status_code == 422
    assert res.json()["error"] == "validation_error"
