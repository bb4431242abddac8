"""Integration tests for circles, invites and membership.

Tests cover:
- Create, list and detail with member/share counts
- Non-members get 403 on every circle-scoped endpoint, existing circle or not
- Invite creation with clamped parameters
- Join ordering: missing, unknown, expired, already member, exhausted
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from scaaf.db.models import CircleInvite, CircleMember, utcnow
from tests.factories import (
    add_member,
    create_circle,
    create_email,
    create_invite,
    create_user,
    minutes_ago,
    share_email,
)
from tests.helpers import auth_headers, data_of, error_of


class TestCreateAndListCircles:
    def test_create_circle_makes_viewer_owner(self, client, test_user_id):
        response = client.post(
            "/api/circles",
            json={"name": "  Book Club  ", "description": "Fiction only"},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 201
        circle = data_of(response)
        assert circle["name"] == "Book Club"
        assert circle["role"] == "owner"
        assert circle["member_count"] == 1
        assert circle["shared_count"] == 0

    def test_blank_name_rejected(self, client, test_user_id):
        response = client.post(
            "/api/circles", json={"name": "   "}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert error_of(response)["code"] == "E_INVALID_REQUEST"

    def test_list_only_includes_viewer_circles(self, client, db_session, test_user_id):
        create_user(db_session, test_user_id)
        other = create_user(db_session)
        mine = create_circle(db_session, test_user_id, name="Mine", created_at=minutes_ago(10))
        joined = create_circle(db_session, other, name="Joined", members=(test_user_id,))
        create_circle(db_session, other, name="Not mine")

        response = client.get("/api/circles", headers=auth_headers(test_user_id))

        circles = data_of(response)
        assert [c["id"] for c in circles] == [str(joined), str(mine)]
        assert {c["id"]: c["role"] for c in circles} == {
            str(mine): "owner",
            str(joined): "member",
        }
        assert response.headers["Cache-Control"] == "no-store"

    def test_list_counts_members_and_shares(self, client, db_session, test_user_id):
        friend = create_user(db_session)
        circle_id = create_circle(db_session, test_user_id, members=(friend,))
        share_email(db_session, circle_id, create_email(db_session, test_user_id), test_user_id)
        share_email(db_session, circle_id, create_email(db_session, friend), friend)

        circles = data_of(client.get("/api/circles", headers=auth_headers(test_user_id)))

        assert circles[0]["member_count"] == 2
        assert circles[0]["shared_count"] == 2

    def test_list_limit_is_clamped(self, client, db_session, test_user_id):
        for i in range(3):
            create_circle(db_session, test_user_id, name=f"c{i}")

        response = client.get(
            "/api/circles", params={"limit": 0}, headers=auth_headers(test_user_id)
        )

        assert len(data_of(response)) == 1


class TestCircleDetail:
    def test_member_sees_counts(self, client, db_session, test_user_id):
        owner = create_user(db_session)
        circle_id = create_circle(db_session, owner, name="Detail", members=(test_user_id,))
        share_email(db_session, circle_id, create_email(db_session, owner), owner)

        response = client.get(f"/api/circles/{circle_id}", headers=auth_headers(test_user_id))

        circle = data_of(response)
        assert circle["name"] == "Detail"
        assert circle["created_by"] == str(owner)
        assert circle["counts"] == {"members": 2, "shares": 1}


class TestNonMemberForbidden:
    @pytest.fixture
    def foreign_circle(self, db_session):
        owner = create_user(db_session)
        return create_circle(db_session, owner, name="Private")

    @pytest.mark.parametrize(
        "method,suffix",
        [
            ("get", ""),
            ("get", "/feed"),
            ("get", "/highlights"),
            ("post", "/invite"),
        ],
    )
    def test_existing_circle_returns_403(
        self, client, test_user_id, foreign_circle, method, suffix
    ):
        response = client.request(
            method.upper(),
            f"/api/circles/{foreign_circle}{suffix}",
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 403
        assert error_of(response)["code"] == "E_NOT_CIRCLE_MEMBER"

    @pytest.mark.parametrize("suffix", ["", "/feed", "/highlights", "/invite"])
    def test_unknown_circle_is_indistinguishable(self, client, test_user_id, suffix):
        method = "POST" if suffix == "/invite" else "GET"
        response = client.request(
            method, f"/api/circles/{uuid4()}{suffix}", headers=auth_headers(test_user_id)
        )

        assert response.status_code == 403
        assert error_of(response)["code"] == "E_NOT_CIRCLE_MEMBER"


class TestCreateInvite:
    def test_invite_defaults(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)

        response = client.post(
            f"/api/circles/{circle_id}/invite", headers=auth_headers(test_user_id)
        )

        assert response.status_code == 201
        invite = data_of(response)
        assert invite["max_uses"] == 50
        assert invite["invite_url"] == f"http://testserver/circles/join?code={invite['code']}"
        stored = db_session.execute(
            select(CircleInvite).where(CircleInvite.code == invite["code"])
        ).scalar_one()
        assert stored.circle_id == circle_id
        assert stored.uses == 0

    def test_invite_parameters_are_clamped(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        before = utcnow()

        response = client.post(
            f"/api/circles/{circle_id}/invite",
            json={"expiresInDays": 365, "maxUses": 0},
            headers=auth_headers(test_user_id),
        )

        invite = data_of(response)
        assert invite["max_uses"] == 1
        stored = db_session.execute(
            select(CircleInvite).where(CircleInvite.code == invite["code"])
        ).scalar_one()
        expires_at = stored.expires_at.replace(tzinfo=before.tzinfo)
        assert timedelta(days=29) < expires_at - before <= timedelta(days=30, minutes=1)

    def test_invite_url_uses_configured_base(
        self, make_client, test_settings, db_session, test_user_id
    ):
        settings = test_settings.model_copy(update={"app_base_url": "https://scaaf.day/"})
        circle_id = create_circle(db_session, test_user_id)

        with make_client(settings) as client:
            response = client.post(
                f"/api/circles/{circle_id}/invite", headers=auth_headers(test_user_id)
            )

        assert data_of(response)["invite_url"].startswith("https://scaaf.day/circles/join?code=")


class TestJoinCircle:
    @pytest.fixture
    def circle(self, db_session):
        owner = create_user(db_session)
        return owner, create_circle(db_session, owner, name="Joinable")

    def test_join_adds_membership_and_uses_invite(self, client, db_session, test_user_id, circle):
        owner, circle_id = circle
        code = create_invite(db_session, circle_id, owner)

        response = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(test_user_id)
        )

        assert data_of(response) == {
            "circle_id": str(circle_id),
            "circle_name": "Joinable",
            "already_member": False,
        }
        db_session.expire_all()
        invite = db_session.execute(
            select(CircleInvite).where(CircleInvite.code == code)
        ).scalar_one()
        assert invite.uses == 1
        member = db_session.execute(
            select(CircleMember).where(
                CircleMember.circle_id == circle_id, CircleMember.user_id == test_user_id
            )
        ).scalar_one()
        assert member.role == "member"

    def test_missing_code_returns_400(self, client, test_user_id):
        response = client.post(
            "/api/circles/join", json={"code": "  "}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400

    def test_unknown_code_returns_404(self, client, test_user_id):
        response = client.post(
            "/api/circles/join", json={"code": "nope"}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 404
        assert error_of(response)["code"] == "E_INVITE_NOT_FOUND"

    def test_expired_code_returns_410(self, client, db_session, test_user_id, circle):
        owner, circle_id = circle
        code = create_invite(db_session, circle_id, owner, expires_at=minutes_ago(1))

        response = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 410
        assert error_of(response)["code"] == "E_INVITE_EXPIRED"

    def test_exhausted_code_returns_409(self, client, db_session, test_user_id, circle):
        owner, circle_id = circle
        code = create_invite(db_session, circle_id, owner, max_uses=2, uses=2)

        response = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 409
        assert error_of(response)["code"] == "E_INVITE_EXHAUSTED"

    def test_already_member_does_not_consume_use(self, client, db_session, test_user_id, circle):
        owner, circle_id = circle
        add_member(db_session, circle_id, test_user_id)
        code = create_invite(db_session, circle_id, owner, max_uses=1, uses=1)

        response = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(test_user_id)
        )

        assert data_of(response)["already_member"] is True
        db_session.expire_all()
        invite = db_session.execute(
            select(CircleInvite).where(CircleInvite.code == code)
        ).scalar_one()
        assert invite.uses == 1

    def test_last_use_then_exhausted(self, client, db_session, circle):
        owner, circle_id = circle
        code = create_invite(db_session, circle_id, owner, max_uses=1)
        first, second = uuid4(), uuid4()

        ok = client.post("/api/circles/join", json={"code": code}, headers=auth_headers(first))
        denied = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(second)
        )

        assert ok.status_code == 200
        assert denied.status_code == 409

    def test_unlimited_invite(self, client, db_session, circle):
        owner, circle_id = circle
        code = create_invite(db_session, circle_id, owner, max_uses=None, uses=1000)

        response = client.post(
            "/api/circles/join", json={"code": code}, headers=auth_headers(uuid4())
        )

        assert data_of(response)["already_member"] is False
