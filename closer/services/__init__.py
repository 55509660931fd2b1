"""Services package."""
from closer.services.followup_scheduler import (
    FollowUpPlanner,
    FollowUpPlan,
    FollowUpStep,
    get_followup_planner,
)

__all__ = [
    "FollowUpPlanner",
    "FollowUpPlan",
    "FollowUpStep",
    "get_followup_planner",
]
