from conftest import login, make_admin, make_file, make_user
from filedrive.models.file import FileMeta
from filedrive.models.user import User
from filedrive.storage.blob import ResourceKind


def test_admin_routes_need_admin_role(client, db):
    assert client.get("/api/admin/users").status_code == 401

    alice = make_user(db, "Alice")
    login(client, alice)

    response = client.get("/api/admin/users")
    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden"}
    assert client.request("DELETE", "/api/admin/users/batch", json={"ids": [alice.id]}).status_code == 403


def test_list_users_payload(client, db):
    admin = make_admin(db)
    alice = make_user(db, "Alice", verified=True)
    make_file(db, alice, size=100)
    make_file(db, alice, size=250)
    make_file(db, alice, size=0)
    login(client, admin)

    body = client.get("/api/admin/users", params={"limit": 1000}).json()

    assert body["total"] == 2
    assert body["adminCount"] == 1
    assert body["verifiedCount"] == 2
    assert body["bannedCount"] == 0
    assert body["perPage"] == 100
    rows = {row["id"]: row for row in body["rows"]}
    assert rows[alice.id]["fileCount"] == 3
    assert rows[alice.id]["totalSizeBytes"] == 350
    assert rows[admin.id]["fileCount"] is None
    assert "password" not in rows[alice.id]


def test_batch_ban_skips_admins(client, db):
    admin = make_admin(db)
    other_admin = make_admin(db, "Second", email="second@example.com")
    alice = make_user(db, "Alice")
    bob = make_user(db, "Bob")
    login(client, admin)

    response = client.patch(
        "/api/admin/users/batch",
        json={"ids": [alice.id, bob.id, other_admin.id], "banned": True},
    )

    assert response.json() == {"modifiedCount": 2}
    db.expire_all()
    assert db.query(User).filter(User.banned.is_(True)).count() == 2
    assert not db.query(User).filter(User.id == other_admin.id).one().banned

    # banned users can no longer log in
    denied = client.post("/api/auth/login", json={"email": alice.email, "password": "secret123"})
    assert denied.status_code == 403


def test_batch_delete_excludes_admins(client, db, blob_store):
    admin = make_admin(db)
    alice = make_user(db, "Alice")
    ids = [alice.id, admin.id]
    blob_store.put("a/1", ResourceKind.RAW)
    make_file(db, alice, "a1", public_id="a/1")
    login(client, admin)

    response = client.request("DELETE", "/api/admin/users/batch", json={"ids": ids})

    assert response.status_code == 200
    body = response.json()
    assert body["deletedCount"] == 1
    assert body["filesDeletedCount"] == 1
    assert db.query(User).count() == 1
    assert db.query(FileMeta).count() == 0

    again = client.request("DELETE", "/api/admin/users/batch", json={"ids": ids})
    assert again.json()["deletedCount"] == 0


def test_delete_single_user(client, db, blob_store):
    admin = make_admin(db)
    other_admin = make_admin(db, "Second", email="second@example.com")
    alice = make_user(db, "Alice")
    blob_store.put("a/1", ResourceKind.IMAGE)
    make_file(db, alice, "a1.png", public_id="a/1", mime_type="image/png")
    login(client, admin)

    assert client.delete(f"/api/admin/users/{other_admin.id}").status_code == 403
    assert client.delete("/api/admin/users/9999").status_code == 404

    response = client.delete(f"/api/admin/users/{alice.id}")
    assert response.status_code == 200
    assert response.json()["filesDeletedCount"] == 1
    assert response.json()["perItemCloudResults"][0]["resourceKind"] == "image"
    assert blob_store.blobs == {}


def test_update_user(client, db):
    admin = make_admin(db)
    other_admin = make_admin(db, "Second", email="second@example.com")
    alice = make_user(db, "Alice")
    login(client, admin)

    response = client.patch(f"/api/admin/users/{alice.id}", json={"name": "Alicia", "verified": True})
    assert response.status_code == 200
    assert response.json()["name"] == "Alicia"
    assert response.json()["verified"] is True

    assert client.patch(f"/api/admin/users/{other_admin.id}", json={"banned": True}).status_code == 403
    assert client.patch(f"/api/admin/users/{alice.id}", json={"role": "ROOT"}).status_code == 400


def test_admin_manages_user_files(client, db, blob_store):
    admin = make_admin(db)
    alice = make_user(db, "Alice")
    blob_store.put("a/1", ResourceKind.RAW)
    first = make_file(db, alice, "one.txt", public_id="a/1")
    make_file(db, alice, "two.txt")
    login(client, admin)

    listing = client.get(f"/api/admin/users/{alice.id}/files").json()
    assert listing["total"] == 2

    response = client.request("DELETE", f"/api/admin/users/{alice.id}/files", json={"ids": [first.id]})
    assert response.json()["deletedCount"] == 1
    assert db.query(FileMeta).count() == 1


def test_out_of_range_user_ids(client, db):
    admin = make_admin(db)
    alice = make_user(db, "Alice")
    login(client, admin)
    huge = 10**20

    ban = client.patch("/api/admin/users/batch", json={"ids": [huge, alice.id], "banned": True})
    assert ban.json() == {"modifiedCount": 1}

    delete = client.request("DELETE", "/api/admin/users/batch", json={"ids": [huge]})
    assert delete.status_code == 200
    assert delete.json()["deletedCount"] == 0

    assert client.delete(f"/api/admin/users/{huge}").status_code == 404
    assert client.patch(f"/api/admin/users/{huge}", json={"verified": True}).status_code == 404
    assert client.get(f"/api/admin/users/{huge}/files").status_code == 404
    assert client.get("/api/admin/users", params={"page": 10**18}).json()["rows"] == []
    assert db.query(User).count() == 2
