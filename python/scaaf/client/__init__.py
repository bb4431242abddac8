"""Python client for the Scaaf API.

ScaafClient talks HTTP; FeedPager, OptimisticList and EmailDetailSession
hold the client-side state a reader UI needs; DailyMissionStore tracks
the daily highlight/share mission and comment streak.
"""

from scaaf.client.api import Page, ScaafApiError, ScaafClient
from scaaf.client.email_detail import EmailDetailSession
from scaaf.client.feed import FeedPager
from scaaf.client.mission import DailyMissionStore, MissionStatus
from scaaf.client.optimistic import OptimisticList, toggle_reaction_locally

__all__ = [
    "DailyMissionStore",
    "EmailDetailSession",
    "FeedPager",
    "MissionStatus",
    "OptimisticList",
    "Page",
    "ScaafApiError",
    "ScaafClient",
    "toggle_reaction_locally",
]
