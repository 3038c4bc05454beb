"""Tests for post workflows: create, update, delete, likes and the feed."""

from __future__ import annotations

import pytest

from app.models.post import CreatePostRequest
from app.services import post_service
from app.services.errors import Conflict
from conftest import bearer, seed_post, seed_user


@pytest.fixture()
def users(fake_db):
    seed_user(fake_db, "writer-uid", "writer@example.com", role="allowed", can_edit=True)
    seed_user(fake_db, "reader-uid", "reader@example.com", role="allowed", can_edit=False)
    seed_user(fake_db, "viewer-uid", "viewer@example.com", role="public")
    return fake_db


class TestCreatePost:
    def test_admin_without_user_record_can_create(self, client, fake_db) -> None:
        response = client.post(
            "/api/posts",
            json={
                "title": "  Sunset  ",
                "content": " At the beach ",
                "images": ["https://cdn/1.jpg", "https://cdn/2.jpg"],
                "visibility": "private",
                "allowedUsers": ["Friend@Example.com", "friend@example.com"],
                "location": {"latitude": 41.0, "longitude": 29.0, "accuracy": 12.5},
            },
            headers=bearer("admin-token"),
        )
        assert response.status_code == 201
        post = fake_db.doc("posts", response.json()["id"])

        assert post["title"] == "Sunset"
        assert post["content"] == "At the beach"
        assert post["images"] == ["https://cdn/1.jpg", "https://cdn/2.jpg"]
        assert post["allowedUsers"] == ["friend@example.com"]
        assert post["createdBy"] == "admin-uid"
        assert post["createdByEmail"] == "Admin@Example.com"
        assert post["createdByName"] == "Admin"
        assert post["likesCount"] == 0
        assert post["likedBy"] == []
        assert post["location"] == {"latitude": 41.0, "longitude": 29.0, "accuracy": 12.5}
        assert post["createdAt"] == post["updatedAt"]

    def test_allowed_user_with_edit_can_create(self, client, users) -> None:
        response = client.post("/api/posts", json={"title": "Hi"}, headers=bearer("writer-token"))
        assert response.status_code == 201

    @pytest.mark.parametrize("token", ["reader-token", "viewer-token", "newcomer-token"])
    def test_users_without_write_permission_are_forbidden(self, client, users, token) -> None:
        response = client.post("/api/posts", json={"title": "Hi"}, headers=bearer(token))
        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}
        assert users.data.get("posts", {}) == {}

    def test_stale_stored_admin_role_is_ignored(self, client, fake_db) -> None:
        seed_user(fake_db, "viewer-uid", "viewer@example.com", role="admin", can_edit=True)
        response = client.post("/api/posts", json={"title": "Hi"}, headers=bearer("viewer-token"))
        assert response.status_code == 403

    def test_long_display_name_in_token(self, client, fake_db) -> None:
        response = client.post("/api/posts", json={"title": "Hi"}, headers=bearer("long-name-token"))
        assert response.status_code == 201
        assert fake_db.doc("posts", response.json()["id"])["createdByName"] == "A" * 300

    def test_name_falls_back_to_email(self, fake_db, policy) -> None:
        seed_user(fake_db, "writer-uid", "writer@example.com", role="allowed", can_edit=True)
        identity = {"uid": "writer-uid", "email": "writer@example.com", "name": None}
        request = CreatePostRequest(title="Hi")
        post_id = post_service.create_post(fake_db, policy, identity, request)
        assert fake_db.doc("posts", post_id)["createdByName"] == "writer@example.com"


class TestPrivatePostVisibility:
    def test_private_post_with_empty_allow_list(self, client, users) -> None:
        created = client.post(
            "/api/posts",
            json={"title": "Secret", "visibility": "private", "allowedUsers": []},
            headers=bearer("admin-token"),
        )
        post_id = created.json()["id"]

        assert client.get(f"/api/posts/{post_id}", headers=bearer("admin-token")).status_code == 200
        assert client.get(f"/api/posts/{post_id}", headers=bearer("reader-token")).status_code == 403
        assert client.get(f"/api/posts/{post_id}").status_code == 403

    def test_listed_user_can_read(self, client, users) -> None:
        seed_post(users, "p1", visibility="private", allowed_users=["reader@example.com"])
        response = client.get("/api/posts/p1", headers=bearer("reader-token"))
        assert response.status_code == 200
        assert response.json()["title"] == "Post p1"

    def test_missing_post(self, client) -> None:
        assert client.get("/api/posts/nope").status_code == 404


class TestUpdatePost:
    def test_merges_provided_fields(self, client, users) -> None:
        seed_post(users, "p1")
        before = users.doc("posts", "p1")

        response = client.patch(
            "/api/posts/p1",
            json={"title": "New title", "allowedUsers": ["A@X.com"]},
            headers=bearer("writer-token"),
        )
        assert response.status_code == 200
        after = users.doc("posts", "p1")
        assert after["title"] == "New title"
        assert after["content"] == before["content"]
        assert after["allowedUsers"] == ["a@x.com"]
        assert after["updatedAt"] > before["updatedAt"]
        assert after["createdAt"] == before["createdAt"]
        assert response.json()["title"] == "New title"

    def test_empty_update_refreshes_updated_at(self, client, users) -> None:
        seed_post(users, "p1")
        before = users.doc("posts", "p1")
        assert client.patch("/api/posts/p1", json={}, headers=bearer("admin-token")).status_code == 200
        assert users.doc("posts", "p1")["updatedAt"] > before["updatedAt"]

    def test_cannot_change_likes_through_update(self, client, users) -> None:
        seed_post(users, "p1", liked_by=["u1"])
        client.patch("/api/posts/p1", json={"likesCount": 99}, headers=bearer("admin-token"))
        assert users.doc("posts", "p1")["likesCount"] == 1

    def test_missing_post(self, client, users) -> None:
        response = client.patch("/api/posts/nope", json={"title": "x"}, headers=bearer("writer-token"))
        assert response.status_code == 404

    def test_forbidden_without_edit(self, client, users) -> None:
        seed_post(users, "p1")
        response = client.patch("/api/posts/p1", json={"title": "x"}, headers=bearer("reader-token"))
        assert response.status_code == 403
        assert users.doc("posts", "p1")["title"] == "Post p1"


class TestDeletePost:
    def test_only_admin_deletes(self, client, users) -> None:
        seed_post(users, "p1")
        assert client.delete("/api/posts/p1", headers=bearer("writer-token")).status_code == 403
        assert users.doc("posts", "p1") is not None

        assert client.delete("/api/posts/p1", headers=bearer("admin-token")).status_code == 204
        assert users.doc("posts", "p1") is None

    def test_author_cannot_delete_own_post(self, client, users) -> None:
        created = client.post("/api/posts", json={"title": "Mine"}, headers=bearer("writer-token"))
        post_id = created.json()["id"]
        assert client.delete(f"/api/posts/{post_id}", headers=bearer("writer-token")).status_code == 403

    def test_missing_post(self, client) -> None:
        assert client.delete("/api/posts/nope", headers=bearer("admin-token")).status_code == 404


class TestToggleLike:
    def test_like_then_unlike(self, client, users) -> None:
        seed_post(users, "p1")

        first = client.post("/api/posts/p1/like", headers=bearer("viewer-token"))
        assert first.json() == {"liked": True, "count": 1}
        post = users.doc("posts", "p1")
        assert post["likedBy"] == ["viewer-uid"]
        assert post["likesCount"] == len(post["likedBy"])

        second = client.post("/api/posts/p1/like", headers=bearer("viewer-token"))
        assert second.json() == {"liked": False, "count": 0}
        post = users.doc("posts", "p1")
        assert post["likedBy"] == []
        assert post["likesCount"] == 0

    def test_count_tracks_likers(self, client, users) -> None:
        seed_post(users, "p1")
        for token in ["viewer-token", "reader-token", "writer-token"]:
            client.post("/api/posts/p1/like", headers=bearer(token))
            post = users.doc("posts", "p1")
            assert post["likesCount"] == len(post["likedBy"])
        assert users.doc("posts", "p1")["likesCount"] == 3

    def test_drifted_count_is_repaired(self, fake_db) -> None:
        seed_post(fake_db, "p1", liked_by=["u1"])
        fake_db.collection("posts").document("p1").update({"likesCount": 5})

        result = post_service.toggle_like(fake_db, {"uid": "u2"}, "p1")
        assert result.count == 2
        assert fake_db.doc("posts", "p1")["likedBy"] == ["u1", "u2"]

    def test_concurrent_like_is_not_lost(self, fake_db) -> None:
        seed_post(fake_db, "p1")

        def other_user_likes(ref):
            ref.update({"likedBy": ["u2"], "likesCount": 1})

        fake_db.before_conditional_update = other_user_likes
        result = post_service.toggle_like(fake_db, {"uid": "u1"}, "p1")

        assert result.liked is True
        assert result.count == 2
        post = fake_db.doc("posts", "p1")
        assert post["likedBy"] == ["u2", "u1"]
        assert post["likesCount"] == 2

    def test_gives_up_after_max_attempts(self, fake_db) -> None:
        seed_post(fake_db, "p1")
        fake_db.before_conditional_update = lambda ref: ref.update({"title": "edited"})
        with pytest.raises(Conflict):
            post_service.toggle_like(fake_db, {"uid": "u1"}, "p1", max_attempts=1)
        assert fake_db.doc("posts", "p1")["likedBy"] == []

    def test_missing_post(self, client) -> None:
        assert client.post("/api/posts/nope/like", headers=bearer("viewer-token")).status_code == 404

    def test_requires_identity(self, client, users) -> None:
        seed_post(users, "p1")
        assert client.post("/api/posts/p1/like").status_code == 401


class TestFeed:
    @pytest.fixture()
    def posts(self, users):
        seed_post(users, "p1", minutes=1, title="Morning walk")
        seed_post(users, "p2", visibility="private", allowed_users=["reader@example.com"], minutes=2)
        seed_post(users, "p3", visibility="private", allowed_users=["viewer@example.com"], minutes=3)
        seed_post(users, "p4", minutes=4, title="Evening walk")
        return users

    @staticmethod
    def ids(response):
        return [p["id"] for p in response.json()["items"]]

    def test_anonymous_sees_public_posts(self, client, posts) -> None:
        response = client.get("/api/posts")
        assert self.ids(response) == ["p4", "p1"]
        assert response.json()["hasMore"] is False

    def test_listed_user_sees_their_private_posts(self, client, posts) -> None:
        assert self.ids(client.get("/api/posts", headers=bearer("reader-token"))) == ["p4", "p2", "p1"]
        assert self.ids(client.get("/api/posts", headers=bearer("viewer-token"))) == ["p4", "p3", "p1"]

    def test_admin_sees_everything(self, client, posts) -> None:
        assert self.ids(client.get("/api/posts", headers=bearer("admin-token"))) == ["p4", "p3", "p2", "p1"]

    def test_pagination_with_merged_queries(self, client, posts) -> None:
        first = client.get("/api/posts?limit=2", headers=bearer("reader-token")).json()
        assert [p["id"] for p in first["items"]] == ["p4", "p2"]
        assert first["hasMore"] is True
        assert first["nextCursor"] == "p2"

        second = client.get(
            f"/api/posts?limit=2&cursor={first['nextCursor']}", headers=bearer("reader-token")
        ).json()
        assert [p["id"] for p in second["items"]] == ["p1"]
        assert second["hasMore"] is False
        assert second["nextCursor"] is None

    def test_unknown_cursor(self, client, posts) -> None:
        assert client.get("/api/posts?cursor=missing").status_code == 400

    def test_cursor_on_hidden_post_looks_unknown(self, client, posts) -> None:
        assert client.get("/api/posts?cursor=p2").status_code == 400
        assert client.get("/api/posts?cursor=p2", headers=bearer("viewer-token")).status_code == 400

        response = client.get("/api/posts?cursor=p2", headers=bearer("reader-token"))
        assert self.ids(response) == ["p1"]

    def test_search(self, client, posts) -> None:
        assert self.ids(client.get("/api/posts?q=EVENING")) == ["p4"]
        assert self.ids(client.get("/api/posts?q=walk")) == ["p4", "p1"]

    def test_restricted_mode(self, client, posts) -> None:
        client.put("/api/site", json={"mode": "restricted"}, headers=bearer("admin-token"))

        assert client.get("/api/posts").status_code == 403
        assert client.get("/api/posts", headers=bearer("viewer-token")).status_code == 403
        assert client.get("/api/posts/p1", headers=bearer("viewer-token")).status_code == 403
        assert client.get("/api/posts", headers=bearer("reader-token")).status_code == 200
