"""
Explicit learner identity passed to the quiz core
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LearnerContext:
    """Who is taking a quiz; handed to pool loading and outcome persistence"""

    user_id: int
    display_name: str = ""
    is_admin: bool = False
