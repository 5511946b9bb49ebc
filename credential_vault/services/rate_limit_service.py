"""
Per-tenant fixed-window rate limiter backed by the shared database, so the
limit holds across every running function instance.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_config
from ..db.db_base import utc_now
from ..db.db_rate_limit_models import RateLimitWindow
from ..exceptions import ErrorCode, RateLimitError, RepositoryError
from ..utils.logger import get_logger


class RateLimiter:
    """Counts requests per tenant in fixed windows of window_seconds."""

    def __init__(
        self,
        session: Session,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        settings = get_config().rate_limit
        self.session = session
        self.max_requests = max_requests if max_requests is not None else settings.max_requests
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.window_seconds
        )
        self.logger = get_logger()

    def window_index(self, now: Optional[datetime] = None) -> int:
        now = now or utc_now()
        return int(now.timestamp()) // self.window_seconds

    def _increment(self, tenant_id: str, window: int) -> int:
        result = self.session.execute(
            update(RateLimitWindow)
            .where(
                and_(
                    RateLimitWindow.tenant_id == tenant_id,
                    RateLimitWindow.window_index == window,
                )
            )
            .values(request_count=RateLimitWindow.request_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _current_count(self, tenant_id: str, window: int) -> int:
        return (
            self.session.query(RateLimitWindow.request_count)
            .filter(
                and_(
                    RateLimitWindow.tenant_id == tenant_id,
                    RateLimitWindow.window_index == window,
                )
            )
            .scalar()
        ) or 0

    def hit(self, tenant_id: str, now: Optional[datetime] = None) -> int:
        """
        Count one request for the tenant.

        Returns:
            The tenant's request count in the current window

        Raises:
            RateLimitError: If the count exceeds max_requests
        """
        window = self.window_index(now)
        try:
            if not self._increment(tenant_id, window):
                try:
                    self.session.add(
                        RateLimitWindow(tenant_id=tenant_id, window_index=window, request_count=1)
                    )
                    self.session.flush()
                except IntegrityError:
                    # Another instance opened the window first
                    self.session.rollback()
                    self._increment(tenant_id, window)
            self.session.commit()
            count = self._current_count(tenant_id, window)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(
                "Rate limit counter update failed",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                tenant_id=tenant_id,
            ) from e

        if count > self.max_requests:
            raise RateLimitError(
                tenant_id=tenant_id,
                limit=self.max_requests,
                window_seconds=self.window_seconds,
            )
        return count

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete counters for windows before the current one."""
        window = self.window_index(now)
        try:
            result = self.session.execute(
                delete(RateLimitWindow)
                .where(RateLimitWindow.window_index < window)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.warning("Rate limit window sweep failed", extra={"error": str(e)})
            return 0
        return result.rowcount or 0
