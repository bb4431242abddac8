"""Highlights and comments for one open email.

EmailDetailSession keeps both collections locally and routes every
change through OptimisticList, so the local view updates before the
server answers and reverts if the request fails. Successful highlights,
shares and comments are reported to the daily mission store when one
is attached.
"""

from typing import Any
from uuid import UUID

from scaaf.client.api import ScaafClient
from scaaf.client.mission import DailyMissionStore
from scaaf.client.optimistic import OptimisticList, toggle_reaction_locally

VIEWER_AUTHOR_NAME = "You"


class EmailDetailSession:
    def __init__(
        self,
        client: ScaafClient,
        email_id: UUID | str,
        mission: DailyMissionStore | None = None,
    ):
        self.client = client
        self.email_id = str(email_id)
        self.mission = mission
        self.highlights = OptimisticList()
        self.comments = OptimisticList()

    def load(self) -> None:
        self.highlights = OptimisticList(self.client.list_email_highlights(self.email_id))
        self.comments = OptimisticList(self.client.list_comments(self.email_id))

    # -------------------------------------------------------------------------
    # Highlights
    # -------------------------------------------------------------------------

    def create_highlight(self, quote: str, memo: str | None = None) -> dict[str, Any]:
        created = self.highlights.mutate(
            lambda: self.highlights.apply_insert(
                "highlight",
                {"email_id": self.email_id, "quote": quote, "memo": memo, "is_shared": False},
            ),
            lambda: self.client.create_highlight(self.email_id, quote, memo),
        )
        if self.mission is not None:
            self.mission.record_highlight(email_id=self.email_id)
        return created

    def delete_highlight(self, highlight_id: str) -> None:
        self.highlights.mutate(
            lambda: self.highlights.apply_remove(highlight_id),
            lambda: self.client.delete_highlight(highlight_id),
        )

    def set_highlight_shared(self, highlight_id: str, is_shared: bool = True) -> dict[str, Any]:
        return self.highlights.mutate(
            lambda: self.highlights.apply_update(highlight_id, {"is_shared": is_shared}),
            lambda: self.client.update_highlight(highlight_id, is_shared=is_shared),
        )

    def share_to_circle(
        self, circle_id: UUID | str, highlight_id: str | None = None
    ) -> dict[str, Any]:
        """Share the email (and optionally a highlight) into a circle."""
        if highlight_id is None:
            result = self.client.share_to_circle(circle_id, self.email_id)
        else:
            result = {}

            # Returns None so the optimistic highlight copy is kept on commit.
            def request() -> None:
                result.update(self.client.share_to_circle(circle_id, self.email_id, highlight_id))

            self.highlights.mutate(
                lambda: self.highlights.apply_update(highlight_id, {"is_shared": True}),
                request,
            )
        if self.mission is not None:
            self.mission.record_share(email_id=self.email_id)
        return result

    # -------------------------------------------------------------------------
    # Comments and reactions
    # -------------------------------------------------------------------------

    def add_comment(self, text: str) -> dict[str, Any]:
        created = self.comments.mutate(
            lambda: self.comments.apply_insert(
                "comment",
                {
                    "email_id": self.email_id,
                    "author_name": VIEWER_AUTHOR_NAME,
                    "text": text,
                    "is_owner": True,
                    "reactions": [],
                },
            ),
            lambda: self.client.create_comment(self.email_id, text),
        )
        if self.mission is not None:
            self.mission.record_comment()
        return created

    def delete_comment(self, comment_id: str) -> None:
        self.comments.mutate(
            lambda: self.comments.apply_remove(comment_id),
            lambda: self.client.delete_comment(comment_id),
        )

    def toggle_reaction(self, comment_id: str, emoji: str) -> list[dict[str, Any]]:
        """Toggle locally, then replace the aggregate with the server's."""
        comment = self.comments.find(comment_id)
        if comment is None:
            raise KeyError(comment_id)

        def request() -> dict[str, Any]:
            reactions = self.client.toggle_reaction(comment_id, emoji)
            return {**comment, "reactions": reactions}

        updated = self.comments.mutate(
            lambda: self.comments.apply_update(
                comment_id,
                {"reactions": toggle_reaction_locally(comment["reactions"], emoji)},
            ),
            request,
        )
        return updated["reactions"]
