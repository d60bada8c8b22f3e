from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import MaintenanceConfig, get_maintenance_config
from core.environment import get_coupling_max_attempts, get_coupling_retry_base_delay
from core.locks import EntityLocks, entity_locks
from core.notifications import FleetEvent, LoggingNotifier, NotificationEventType, Notifier, safe_publish
from core.retry import RetryableError, async_retry
from services.exceptions import ConcurrentModificationError, DatabaseQueryError

T = TypeVar("T")

# Store errors that signal a lost race rather than a bug
CONFLICT_ERRORS = (RetryableError, OperationalError, IntegrityError)


class FleetService:
    """
    Common collaborators of the fleet services.

    Everything is injected: the session, the maintenance configuration,
    the notifier and the clock. Tests substitute any of them.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[MaintenanceConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.config = config or get_maintenance_config()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or datetime.now

    def now(self) -> datetime:
        return self.clock()

    def local_time(self, value: Optional[datetime]) -> datetime:
        """
        Caller-supplied timestamp on the clock's naive local time base; ``None``
        means now. Offset-aware values (``...Z``, ``+02:00``) are converted first.
        """
        if value is None:
            return self.now()
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    def emit(self, event_type: NotificationEventType, title: str, **payload: Any) -> None:
        safe_publish(self.notifier, FleetEvent(event_type=event_type, title=title, payload=payload))


class TransactionalService(FleetService):
    """Fleet service whose writes run serialized, atomically and with bounded retries."""

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[MaintenanceConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        locks: Optional[EntityLocks] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ):
        super().__init__(db, config=config, notifier=notifier, clock=clock)
        self.locks = locks or entity_locks
        self.max_attempts = max_attempts or get_coupling_max_attempts()
        self.base_delay = get_coupling_retry_base_delay() if base_delay is None else base_delay

    async def run_serialized(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run ``operation`` with exponential-backoff retries on store conflicts.

        Domain errors propagate untouched on the first attempt. Conflicts that
        survive every attempt surface as ConcurrentModificationError.
        """
        retrying = async_retry(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=1.0,
            retry_on=CONFLICT_ERRORS,
        )(operation)
        try:
            return await retrying(*args, **kwargs)
        except CONFLICT_ERRORS as e:
            raise ConcurrentModificationError(
                f"Could not complete {operation.__name__.lstrip('_')} due to concurrent modification."
            ) from e
        except SQLAlchemyError as e:
            raise DatabaseQueryError(str(e)) from e
