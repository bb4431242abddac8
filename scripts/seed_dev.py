#!/usr/bin/env python
"""Seed development database with fixture data.

Seeds two users, a shared circle, an address and a couple of newsletters
so the inbox and circle feeds have something to show locally.

Constraints:
- Refuses to run in staging or prod (SCAAF_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/seed_dev.py

Sign in as one of the seeded users by minting a token whose sub is
SEED_READER_ID or SEED_FRIEND_ID.
"""

import os
import sys
from datetime import UTC, datetime, timedelta

SEED_READER_ID = "0b6a2a4e-6f0e-4c5b-9d7e-000000000001"
SEED_FRIEND_ID = "0b6a2a4e-6f0e-4c5b-9d7e-000000000002"
SEED_CIRCLE_ID = "5c1e1e00-0000-4000-8000-000000000001"
SEED_ADDRESS_ID = "addc0de0-0000-4000-8000-000000000001"
SEED_EMAIL_IDS = (
    "e0000000-0000-4000-8000-000000000001",
    "e0000000-0000-4000-8000-000000000002",
)
SEED_INVITE_CODE = "dev-circle-invite"


def main():
    # 1. Environment check (hard fail in staging/prod)
    scaaf_env = os.getenv("SCAAF_ENV", "local")
    if scaaf_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in SCAAF_ENV={scaaf_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    mail_domain = os.getenv("MAIL_DOMAIN", "scaaf.day")

    from sqlalchemy import create_engine, text

    engine = create_engine(database_url)
    now = datetime.now(UTC)
    created = []

    def insert(conn, label: str, sql: str, params: dict) -> None:
        row = conn.execute(text(sql + " ON CONFLICT DO NOTHING RETURNING 1"), params).fetchone()
        created.append((label, row is not None))

    with engine.connect() as conn:
        # 3. Idempotent seeding
        for user_id, name in ((SEED_READER_ID, "Reader"), (SEED_FRIEND_ID, "Friend")):
            insert(
                conn,
                f"user {name}",
                "INSERT INTO users (id, display_name) VALUES (:id, :name)",
                {"id": user_id, "name": name},
            )

        insert(
            conn,
            f"address reader@{mail_domain}",
            """
            INSERT INTO addresses (id, user_id, local_part, domain, full_address, status)
            VALUES (:id, :user_id, 'reader', :domain, :full_address, 'active')
            """,
            {
                "id": SEED_ADDRESS_ID,
                "user_id": SEED_READER_ID,
                "domain": mail_domain,
                "full_address": f"reader@{mail_domain}",
            },
        )

        for i, email_id in enumerate(SEED_EMAIL_IDS):
            insert(
                conn,
                f"email {email_id}",
                """
                INSERT INTO inbox_emails
                    (id, user_id, address_id, from_address, to_address,
                     subject, body_text, snippet, received_at)
                VALUES
                    (:id, :user_id, :address_id, 'Weekly Digest <digest@example.com>',
                     :to_address, :subject, :body, :body, :received_at)
                """,
                {
                    "id": email_id,
                    "user_id": SEED_READER_ID,
                    "address_id": SEED_ADDRESS_ID,
                    "to_address": f"reader@{mail_domain}",
                    "subject": f"Weekly Digest #{i + 1}",
                    "body": f"Issue {i + 1}: the best things we read this week.",
                    "received_at": now - timedelta(days=i),
                },
            )

        insert(
            conn,
            "circle Reading Club",
            """
            INSERT INTO circles (id, name, description, created_by)
            VALUES (:id, 'Reading Club', 'Newsletters worth discussing', :owner)
            """,
            {"id": SEED_CIRCLE_ID, "owner": SEED_READER_ID},
        )
        for user_id, role in ((SEED_READER_ID, "owner"), (SEED_FRIEND_ID, "member")):
            insert(
                conn,
                f"membership {role}",
                """
                INSERT INTO circle_members (circle_id, user_id, role)
                VALUES (:circle_id, :user_id, :role)
                """,
                {"circle_id": SEED_CIRCLE_ID, "user_id": user_id, "role": role},
            )

        insert(
            conn,
            "share of the latest email",
            """
            INSERT INTO circle_emails (circle_id, email_id, shared_by)
            VALUES (:circle_id, :email_id, :shared_by)
            """,
            {
                "circle_id": SEED_CIRCLE_ID,
                "email_id": SEED_EMAIL_IDS[0],
                "shared_by": SEED_READER_ID,
            },
        )
        insert(
            conn,
            f"invite {SEED_INVITE_CODE}",
            """
            INSERT INTO circle_invites (circle_id, code, created_by, expires_at, max_uses)
            VALUES (:circle_id, :code, :created_by, :expires_at, 50)
            """,
            {
                "circle_id": SEED_CIRCLE_ID,
                "code": SEED_INVITE_CODE,
                "created_by": SEED_READER_ID,
                "expires_at": now + timedelta(days=30),
            },
        )

        conn.commit()

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"SCAAF_ENV: {scaaf_env}")
    print()
    for label, was_created in created:
        print(f"{'✓ Created' if was_created else '• Exists'}: {label}")


if __name__ == "__main__":
    main()
