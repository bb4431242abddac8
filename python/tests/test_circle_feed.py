"""Integration tests for the circle feeds.

Tests cover:
- Keyset paging over shares, including shares with identical timestamps
- The viewer feed spanning every circle the viewer belongs to
- Activity counts and latest activity per share
- Sharer profiles and display-name fallbacks
- The shared-highlights feed
"""

from datetime import datetime
from uuid import uuid4

from tests.factories import (
    add_member,
    create_circle,
    create_comment,
    create_email,
    create_highlight,
    create_user,
    minutes_ago,
    share_email,
)
from tests.helpers import auth_headers, data_of


def get_page(client, path, user_id, **params):
    response = client.get(path, params=params, headers=auth_headers(user_id))
    assert response.status_code == 200, response.text
    body = response.json()
    return body["data"], body["page"]["next_cursor"]


def parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


class TestCircleFeedPaging:
    def test_two_pages(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        share_ids = [
            share_email(
                db_session,
                circle_id,
                create_email(db_session, test_user_id, subject=f"Issue {n}"),
                test_user_id,
                created_at=minutes_ago(10 - n),
            )
            for n in range(3)
        ]
        path = f"/api/circles/{circle_id}/feed"

        first, cursor = get_page(client, path, test_user_id, limit=2)
        second, end = get_page(client, path, test_user_id, limit=2, cursor=cursor)

        assert [i["id"] for i in first] == [str(share_ids[2]), str(share_ids[1])]
        assert cursor is not None
        assert [i["id"] for i in second] == [str(share_ids[0])]
        assert end is None

    def test_walk_with_equal_timestamps_visits_every_share_once(
        self, client, db_session, test_user_id
    ):
        circle_id = create_circle(db_session, test_user_id)
        same_time = minutes_ago(5)
        expected = {
            str(
                share_email(
                    db_session,
                    circle_id,
                    create_email(db_session, test_user_id),
                    test_user_id,
                    created_at=same_time,
                )
            )
            for _ in range(5)
        }
        expected.add(
            str(
                share_email(
                    db_session,
                    circle_id,
                    create_email(db_session, test_user_id),
                    test_user_id,
                    created_at=minutes_ago(1),
                )
            )
        )

        seen: list[str] = []
        cursor = None
        for _ in range(10):
            params = {"limit": 2}
            if cursor:
                params["cursor"] = cursor
            items, cursor = get_page(
                client, f"/api/circles/{circle_id}/feed", test_user_id, **params
            )
            seen.extend(i["id"] for i in items)
            if cursor is None:
                break

        assert cursor is None
        assert len(seen) == len(set(seen))
        assert set(seen) == expected

    def test_empty_feed(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)

        items, cursor = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        assert items == []
        assert cursor is None

    def test_feed_is_not_cached(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)

        response = client.get(
            f"/api/circles/{circle_id}/feed", headers=auth_headers(test_user_id)
        )

        assert response.headers["Cache-Control"] == "no-store"


class TestViewerFeed:
    def test_spans_viewer_circles_only(self, client, db_session, test_user_id):
        friend = create_user(db_session)
        stranger = create_user(db_session)
        first = create_circle(db_session, test_user_id, name="First")
        second = create_circle(db_session, friend, name="Second", members=(test_user_id,))
        elsewhere = create_circle(db_session, stranger, name="Elsewhere")

        older = share_email(
            db_session, first, create_email(db_session, test_user_id), test_user_id, minutes_ago(3)
        )
        newer = share_email(
            db_session, second, create_email(db_session, friend), friend, minutes_ago(1)
        )
        share_email(db_session, elsewhere, create_email(db_session, stranger), stranger)

        items, cursor = get_page(client, "/api/circles/feed", test_user_id)

        assert [i["id"] for i in items] == [str(newer), str(older)]
        assert {i["circle_id"] for i in items} == {str(first), str(second)}
        assert cursor is None

    def test_viewer_without_circles_gets_empty_feed(self, client, test_user_id):
        items, cursor = get_page(client, "/api/circles/feed", test_user_id)

        assert items == []
        assert cursor is None


class TestFeedItemActivity:
    def test_counts_and_latest_activity(self, client, db_session, test_user_id):
        friend = create_user(db_session)
        outsider = create_user(db_session)
        circle_id = create_circle(db_session, test_user_id, members=(friend,))
        email_id = create_email(db_session, test_user_id, subject="Morning Brew")
        share_email(db_session, circle_id, email_id, test_user_id, minutes_ago(30))

        create_highlight(db_session, email_id, test_user_id, is_shared=True,
                         created_at=minutes_ago(20))
        newest_highlight_at = minutes_ago(15)
        create_highlight(db_session, email_id, friend, is_shared=True,
                         created_at=newest_highlight_at)
        # Private highlights and highlights by non-members are not counted
        create_highlight(db_session, email_id, friend, is_shared=False, created_at=minutes_ago(1))
        create_highlight(db_session, email_id, outsider, is_shared=True, created_at=minutes_ago(1))
        create_comment(db_session, email_id, friend, created_at=minutes_ago(25))

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        item = items[0]
        assert item["email_id"] == str(email_id)
        assert item["subject"] == "Morning Brew"
        assert item["highlight_count"] == 2
        assert item["comment_count"] == 1
        assert parse_time(item["latest_activity"]) == newest_highlight_at

    def test_comment_can_be_latest_activity(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        email_id = create_email(db_session, test_user_id)
        share_email(db_session, circle_id, email_id, test_user_id, minutes_ago(30))
        create_highlight(db_session, email_id, test_user_id, is_shared=True,
                         created_at=minutes_ago(20))
        comment_at = minutes_ago(2)
        create_comment(db_session, email_id, test_user_id, created_at=comment_at)

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        assert parse_time(items[0]["latest_activity"]) == comment_at

    def test_no_activity(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        share_email(db_session, circle_id, create_email(db_session, test_user_id), test_user_id)

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        assert items[0]["highlight_count"] == 0
        assert items[0]["comment_count"] == 0
        assert items[0]["latest_activity"] is None

    def test_member_who_left_no_longer_counts(self, client, db_session, test_user_id):
        former = create_user(db_session)
        circle_id = create_circle(db_session, test_user_id)
        email_id = create_email(db_session, test_user_id)
        share_email(db_session, circle_id, email_id, test_user_id)
        create_highlight(db_session, email_id, former, is_shared=True)

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)
        assert items[0]["highlight_count"] == 0

        add_member(db_session, circle_id, former)
        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)
        assert items[0]["highlight_count"] == 1


class TestSharerProfiles:
    def test_profile_name_fallbacks(self, client, db_session, test_user_id):
        named = create_user(db_session, display_name="Ada")
        handle_only = create_user(db_session, username="grace")
        anonymous = create_user(db_session)
        circle_id = create_circle(
            db_session, test_user_id, members=(named, handle_only, anonymous)
        )
        for offset, sharer in enumerate((named, handle_only, anonymous)):
            share_email(
                db_session,
                circle_id,
                create_email(db_session, sharer),
                sharer,
                created_at=minutes_ago(10 - offset),
            )

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        names = {i["shared_by"]: i["shared_by_profile"]["name"] for i in items}
        assert names == {str(named): "Ada", str(handle_only): "grace", str(anonymous): "Member"}

    def test_sharer_without_user_row_gets_placeholder(self, client, db_session, test_user_id):
        ghost = uuid4()
        circle_id = create_circle(db_session, test_user_id)
        share_email(db_session, circle_id, create_email(db_session, test_user_id), ghost)

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        assert items[0]["shared_by_profile"] == {
            "id": str(ghost),
            "name": "Member",
            "avatar_url": None,
        }

    def test_deleted_sharer_is_null(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        share_email(db_session, circle_id, create_email(db_session, test_user_id), None)

        items, _ = get_page(client, f"/api/circles/{circle_id}/feed", test_user_id)

        assert items[0]["shared_by"] is None
        assert items[0]["shared_by_profile"] is None


class TestCircleHighlights:
    def test_only_shared_highlights_by_members(self, client, db_session, test_user_id):
        friend = create_user(db_session, display_name="Friend One")
        outsider = create_user(db_session)
        circle_id = create_circle(db_session, test_user_id, name="Quotes", members=(friend,))
        email_id = create_email(db_session, test_user_id, subject="Essay")
        unshared_email = create_email(db_session, test_user_id)
        share_email(db_session, circle_id, email_id, test_user_id)

        older = create_highlight(db_session, email_id, test_user_id, quote="first",
                                 is_shared=True, created_at=minutes_ago(5))
        newer = create_highlight(db_session, email_id, friend, quote="second",
                                 is_shared=True, created_at=minutes_ago(1))
        create_highlight(db_session, email_id, friend, is_shared=False)
        create_highlight(db_session, email_id, outsider, is_shared=True)
        create_highlight(db_session, unshared_email, test_user_id, is_shared=True)

        items, cursor = get_page(client, f"/api/circles/{circle_id}/highlights", test_user_id)

        assert [i["id"] for i in items] == [str(newer), str(older)]
        assert cursor is None
        top = items[0]
        assert top["quote"] == "second"
        assert top["circle_name"] == "Quotes"
        assert top["subject"] == "Essay"
        assert top["shared_by"] == str(friend)
        assert top["shared_by_profile"]["name"] == "Friend One"

    def test_highlights_page(self, client, db_session, test_user_id):
        circle_id = create_circle(db_session, test_user_id)
        email_id = create_email(db_session, test_user_id)
        share_email(db_session, circle_id, email_id, test_user_id)
        for n in range(3):
            create_highlight(db_session, email_id, test_user_id, is_shared=True,
                             created_at=minutes_ago(n + 1))

        first, cursor = get_page(
            client, f"/api/circles/{circle_id}/highlights", test_user_id, limit=2
        )
        rest, end = get_page(
            client, f"/api/circles/{circle_id}/highlights", test_user_id, limit=2, cursor=cursor
        )

        assert len(first) == 2
        assert len(rest) == 1
        assert end is None
        assert data_of(
            client.get(f"/api/circles/{circle_id}", headers=auth_headers(test_user_id))
        )["counts"]["shares"] == 1
