"""Badge service exports."""

from .dispatch import (  # noqa: F401
    BadgeDispatcher,
    CeleryBadgeDispatcher,
    InProcessBadgeDispatcher,
    NullBadgeDispatcher,
    build_badge_dispatcher,
)
from .evaluator import BadgeEvaluator  # noqa: F401
