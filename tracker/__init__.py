"""Smart task tracker core library: models, store and repositories.

Public API re-exports for convenient imports:
    from tracker import AppContext, TaskRepository, load_settings, ...
"""

# Configuration & time
from tracker.settings import Settings, load_settings, resolve_timezone
from tracker.clock import SystemClock, FrozenClock
from tracker.logging_setup import setup_logging

# Errors
from tracker.errors import (
    TrackerError,
    ConfigError,
    ValidationError,
    InvalidIdError,
    NotFoundError,
    MissingParameterError,
    SessionClosedError,
    StoreError,
)

# Store
from tracker.store import Store, connect, parse_object_id, is_object_id

# Models
from tracker.models import (
    Task,
    TaskFilter,
    UpdateTaskFields,
    FocusSession,
    TaskRef,
    Overview,
    UNSET,
)

# Repositories & engines
from tracker.tasks import TaskRepository
from tracker.focus import FocusSessionRepository
from tracker.stats import StatsEngine
from tracker.context import AppContext
