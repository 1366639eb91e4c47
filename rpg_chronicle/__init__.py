"""Event-sourced narrative state for role-play chats."""

from .chapters import Chapter, compute_chapters  # noqa: F401
from .events import Event, parse_event  # noqa: F401
from .projection import project  # noqa: F401
from .rate_limiter import RateLimiter  # noqa: F401
from .snapshot import Snapshot  # noqa: F401
from .store import EventStore, SwipeSelection  # noqa: F401
