"""Topic names published by the delivery pipeline and live match posting."""


class DeliveryTopics:
    """Batch lifecycle topics. Subscribe with 'batch.*' to observe all of them."""

    # Payload built, about to be sent
    PREPARED = "batch.prepared"

    # Webhook accepted the batch; idempotency key marked
    DELIVERED = "batch.delivered"

    # Retries exhausted; escalation raised
    FAILED = "batch.failed"

    # Request suppressed by the idempotency store
    DUPLICATE = "batch.duplicate"


class MatchTopics:
    """Live match event topics. Subscribe with 'match.*' for all of them."""

    GOAL_SCORED = "match.goal.scored"
    GOAL_CONCEDED = "match.goal.conceded"
    CARD_SHOWN = "match.card.shown"
    OPPOSITION_CARD = "match.card.opposition"
    MOTM = "match.motm"
    SUBSTITUTION = "match.substitution"
    KICK_OFF = "match.kick_off"
    HALF_TIME = "match.half_time"
    SECOND_HALF = "match.second_half"
    ENDED = "match.ended"
    POSTPONED = "match.postponed"


# Webhook event_type -> bus topic for live match events
LIVE_EVENT_TOPICS: dict[str, str] = {
    "goal_team": MatchTopics.GOAL_SCORED,
    "goal_opposition": MatchTopics.GOAL_CONCEDED,
    "card_yellow": MatchTopics.CARD_SHOWN,
    "card_red": MatchTopics.CARD_SHOWN,
    "card_second_yellow": MatchTopics.CARD_SHOWN,
    "card_sin_bin": MatchTopics.CARD_SHOWN,
    "discipline_opposition": MatchTopics.OPPOSITION_CARD,
    "motm": MatchTopics.MOTM,
    "substitution": MatchTopics.SUBSTITUTION,
    "kick_off": MatchTopics.KICK_OFF,
    "half_time": MatchTopics.HALF_TIME,
    "second_half_kickoff": MatchTopics.SECOND_HALF,
    "full_time": MatchTopics.ENDED,
}
