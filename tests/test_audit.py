from guardops.models.models import AuditLog


def test_writes_are_audited_and_verify(client, factory, admin_headers):
    guard = factory.guard()
    client.patch(f"/guards/{guard.id}", json={"position": "Supervisor"}, headers=admin_headers)

    r = client.get("/audit-logs", params={"entity_id": str(guard.id)}, headers=admin_headers)
    assert r.status_code == 200
    entries = r.json()
    assert len(entries) == 1
    assert entries[0]["action"] == "UPDATE"
    assert entries[0]["changes_json"]["position"] == {"before": "Guard", "after": "Supervisor"}
    assert entries[0]["verified"] is True


def test_tampered_entry_fails_verification(client, db, factory, admin_headers):
    guard = factory.guard()
    client.patch(f"/guards/{guard.id}", json={"position": "Supervisor"}, headers=admin_headers)

    entry = db.query(AuditLog).filter(AuditLog.entity_id == guard.id).one()
    entry.actor_role = "guard"
    db.commit()

    r = client.get("/audit-logs", params={"entity_id": str(guard.id)}, headers=admin_headers)
    assert r.json()[0]["verified"] is False


def test_audit_log_is_admin_only(client, factory):
    leader = factory.headers(factory.user("team_leader"))
    assert client.get("/audit-logs", headers=leader).status_code == 403
