"""
Generic get/create/update/delete over the named collections.

Payloads pass through the pydantic schema of their collection before they
reach the ORM, so services never write unchecked dicts into the DB.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from core.log import get_logger
from core.events import log_event, E
from core.errors import RecordNotFound, StoreError, ValidationFailed
from core.models import (
    ActivityLog,
    AlgorithmNews,
    Broadcast,
    Caption,
    CompetitorAnalysis,
    Idea,
    Plan,
    Report,
    Scenario,
)
from core.schemas import (
    ActivityLogIn,
    AlgorithmNewsIn,
    BroadcastIn,
    CaptionIn,
    CompetitorAnalysisIn,
    IdeaIn,
    PlanIn,
    ReportIn,
    ScenarioIn,
)

logger = get_logger(__name__)

# name -> (model, schema, order column, descending)
COLLECTIONS: Dict[str, Tuple[Any, Type[BaseModel], str, bool]] = {
    "scenarios": (Scenario, ScenarioIn, "scenario_number", False),
    "ideas": (Idea, IdeaIn, "id", False),
    "plans": (Plan, PlanIn, "timestamp", True),
    "reports": (Report, ReportIn, "timestamp", True),
    "captions": (Caption, CaptionIn, "created_at", True),
    "competitor_analyses": (CompetitorAnalysis, CompetitorAnalysisIn, "created_at", True),
    "activity_logs": (ActivityLog, ActivityLogIn, "created_at", True),
    "broadcasts": (Broadcast, BroadcastIn, "timestamp", True),
    "algorithm_news": (AlgorithmNews, AlgorithmNewsIn, "created_at", True),
}

_TIMESTAMP_FIELDS = ("created_at", "timestamp")


def _collection(name: str):
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(f"unknown collection: {name}")


def _validate(schema: Type[BaseModel], payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return schema.model_validate(payload).model_dump()
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(x) for x in first.get("loc", ()))
        raise ValidationFailed(f"داده نامعتبر است ({field}).")


def record_to_dict(row) -> Dict[str, Any]:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        data[column.name] = value
    return data


class RecordStore:
    def __init__(self, session):
        self.session = session

    def _query(self, collection: str):
        model, _, order_field, desc = _collection(collection)
        order_col = getattr(model, order_field)
        return self.session.query(model).order_by(order_col.desc() if desc else order_col.asc())

    def get(self, collection: str, record_id: int):
        model = _collection(collection)[0]
        return self.session.query(model).filter(model.id == record_id).first()

    def require(self, collection: str, record_id: int):
        row = self.get(collection, record_id)
        if row is None:
            raise RecordNotFound(collection, record_id)
        return row

    def list_for_user(self, collection: str, user_id: int, limit: Optional[int] = None) -> List[Any]:
        model = _collection(collection)[0]
        query = self._query(collection).filter(model.user_id == user_id)
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_all(self, collection: str, limit: Optional[int] = None) -> List[Any]:
        query = self._query(collection)
        if limit:
            query = query.limit(limit)
        return query.all()

    def count_for_user(self, collection: str, user_id: int, since: Optional[datetime] = None) -> int:
        model, _, order_field, _ = _collection(collection)
        query = self.session.query(model).filter(model.user_id == user_id)
        if since is not None and order_field in _TIMESTAMP_FIELDS:
            query = query.filter(getattr(model, order_field) > since)
        return query.count()

    def create(self, collection: str, payload: Dict[str, Any]):
        model, schema, _, _ = _collection(collection)
        data = _validate(schema, payload)
        for field in _TIMESTAMP_FIELDS:
            if field in data and data[field] is None:
                data[field] = datetime.now()
        row = model(**data)
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            self.session.rollback()
            log_event(logger, E.RECORD_CREATE, level="error", collection=collection, error=e)
            raise StoreError(f"خطای پایگاه داده: {e}")
        log_event(logger, E.RECORD_CREATE, collection=collection, id=row.id, user_id=data.get("user_id", "-"))
        return row

    def update(self, collection: str, record_id: int, changes: Dict[str, Any]):
        row = self.require(collection, record_id)
        schema = _collection(collection)[1]
        merged = {**record_to_dict(row), **changes}
        data = _validate(schema, merged)
        for key in changes:
            if key in data:
                setattr(row, key, data[key])
        if hasattr(row, "updated_at"):
            row.updated_at = datetime.now()
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"خطای پایگاه داده: {e}")
        log_event(logger, E.RECORD_UPDATE, collection=collection, id=record_id, fields=",".join(changes))
        return row

    def delete(self, collection: str, record_id: int) -> bool:
        row = self.get(collection, record_id)
        if row is None:
            return False
        try:
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"خطای پایگاه داده: {e}")
        log_event(logger, E.RECORD_DELETE, collection=collection, id=record_id)
        return True
