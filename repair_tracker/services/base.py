"""
Base Service Classes
====================

Base classes dan utilities untuk semua services
"""

from abc import ABC
from typing import Optional, Dict, Any, List
from functools import wraps
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from starlette.exceptions import HTTPException

from .exceptions import RepairTrackerError, NotFoundError
from ..events import EventBus, EventType
from ..models import ActivityLog
from ..schemas import ActionResult

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"

# Signal framework (termasuk redirect) yang harus lolos apa adanya dari boundary
PASSTHROUGH_EXCEPTIONS = (HTTPException,)


def transactional(func):
    """Decorator untuk automatic transaction management"""
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            result = await func(self, *args, **kwargs)
            if hasattr(self, 'db_session') and self.db_session:
                await self.db_session.commit()
            return result
        except Exception as e:
            if hasattr(self, 'db_session') and self.db_session:
                await self.db_session.rollback()
            logger.error(f"Transaction failed in {func.__name__}: {str(e)}")
            raise
    return wrapper


def action_result(func):
    """
    Decorator boundary: hasil method dibungkus ``ActionResult``.

    Error yang dikenal jadi failure dengan error_code-nya, error lain jadi
    failure generik (traceback di-log). Exception di PASSTHROUGH_EXCEPTIONS
    di-raise ulang tanpa diubah.
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            data = await func(self, *args, **kwargs)
            return ActionResult.ok(data)
        except PASSTHROUGH_EXCEPTIONS:
            raise
        except RepairTrackerError as e:
            self.logger.info(f"{func.__name__} failed: [{e.error_code}] {e.message}")
            return ActionResult.fail(e.message, e.error_code, e.details)
        except Exception:
            self.logger.exception(f"Unexpected error in {func.__name__}")
            return ActionResult.fail("An unexpected error occurred", 'INTERNAL_ERROR')
    return wrapper


class BaseService(ABC):
    """Base service class dengan common functionality"""

    def __init__(self, db_session: AsyncSession, current_user: Optional[str] = None,
                 event_bus: Optional[EventBus] = None):
        self.db_session = db_session
        self.current_user = current_user
        self.event_bus = event_bus
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def actor(self) -> str:
        return self.current_user or SYSTEM_USER

    async def _get_or_404(self, model_class, entity_id: int):
        """Get entity by ID or raise NotFoundError"""
        result = await self.db_session.execute(select(model_class).filter(model_class.id == entity_id))
        entity = result.scalars().first()
        if not entity:
            raise NotFoundError(model_class.__name__, entity_id)
        return entity

    async def _paginate_query(self, query, page: int = 1, per_page: int = 20,
                              max_per_page: int = 100):
        """Paginate query results"""
        per_page = min(per_page, max_per_page)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db_session.execute(count_query)).scalar() or 0

        items_result = await self.db_session.execute(query.offset((page - 1) * per_page).limit(per_page))
        return {
            'items': items_result.scalars().all(),
            'pagination': self._pagination_info(total, page, per_page),
        }

    @staticmethod
    def _pagination_info(total: int, page: int, per_page: int) -> Dict[str, Any]:
        pages = (total + per_page - 1) // per_page if total > 0 else 1
        return {
            'page': page,
            'per_page': per_page,
            'total': total,
            'pages': pages,
            'has_prev': page > 1,
            'has_next': page < pages,
        }

    def _apply_search(self, query, model_class, search_term: str, search_fields: List[str],
                      extra_conditions: List[Any] = None):
        """Apply text search (ILIKE) ke beberapa kolom"""
        if not search_term or not search_fields:
            return query

        search_conditions = list(extra_conditions or [])
        for field in search_fields:
            if hasattr(model_class, field):
                field_attr = getattr(model_class, field)
                search_conditions.append(field_attr.ilike(f'%{search_term}%'))

        if search_conditions:
            query = query.filter(or_(*search_conditions))
        return query

    async def _log_activity(self, repair_order_id: int, action: str, field: str = None,
                            old_value: Any = None, new_value: Any = None,
                            user_id: str = None) -> ActivityLog:
        """Tambah satu baris activity log (belum di-commit)"""
        entry = ActivityLog(
            repair_order_id=repair_order_id,
            action=action,
            field=field,
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
            user_id=user_id or self.actor,
        )
        self.db_session.add(entry)
        await self.db_session.flush()
        return entry

    def _publish(self, event_type: EventType, payload: Any = None) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type, payload)
