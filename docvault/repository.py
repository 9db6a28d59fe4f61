"""
Document persistence and the name-keyed category lookup.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from docvault.errors import CategoryExistsError, PersistenceError
from docvault.models import CategoryModel, DocumentModel
from docvault.schemas import CANONICAL_TYPES, DEFAULT_TYPE

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("vendor", "date", "amount", "type", "reminder_date")


class DocumentRepository:
    def __init__(self, db: Session):
        self.db = db

    def insert(self, row: DocumentModel) -> DocumentModel:
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                f"Document insert rejected: {e.__class__.__name__}",
                storage_key=row.storage_key,
            ) from e
        self.db.refresh(row)
        return row

    def get(self, owner_id: str, document_id: str) -> Optional[DocumentModel]:
        return (
            self.db.query(DocumentModel)
            .filter(DocumentModel.id == document_id, DocumentModel.owner_id == owner_id)
            .first()
        )

    def update(self, owner_id: str, document_id: str, fields: dict) -> Optional[DocumentModel]:
        row = self.get(owner_id, document_id)
        if row is None:
            return None
        for name, value in fields.items():
            if name not in EDITABLE_FIELDS:
                raise ValueError(f"Field is not editable: {name}")
            setattr(row, name, value)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Document update rejected: {e.__class__.__name__}") from e
        self.db.refresh(row)
        return row

    def delete(self, owner_id: str, document_id: str) -> Optional[DocumentModel]:
        row = self.get(owner_id, document_id)
        if row is None:
            return None
        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Document delete rejected: {e.__class__.__name__}") from e
        return row

    def list_by_owner(
        self,
        owner_id: str,
        q: Optional[str] = None,
        doc_type: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[DocumentModel]:
        """Newest first. Date bounds are inclusive YYYY-MM-DD strings; an
        undated document never matches once either bound is given.
        """
        query = self.db.query(DocumentModel).filter(DocumentModel.owner_id == owner_id)
        if doc_type:
            query = query.filter(DocumentModel.type == doc_type)
        if date_from or date_to:
            query = query.filter(DocumentModel.date.isnot(None))
        if date_from:
            query = query.filter(DocumentModel.date >= date_from)
        if date_to:
            query = query.filter(DocumentModel.date <= date_to)
        if q and q.strip():
            pattern = f"%{q.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(DocumentModel.vendor).like(pattern),
                    func.lower(DocumentModel.type).like(pattern),
                    func.lower(func.coalesce(DocumentModel.amount, "")).like(pattern),
                )
            )
        query = query.order_by(DocumentModel.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def with_reminders(self, owner_id: str) -> list[DocumentModel]:
        return (
            self.db.query(DocumentModel)
            .filter(DocumentModel.owner_id == owner_id, DocumentModel.reminder_date.isnot(None))
            .order_by(DocumentModel.reminder_date.asc())
            .all()
        )

    def stats(self, owner_id: str) -> dict:
        base = self.db.query(DocumentModel).filter(DocumentModel.owner_id == owner_id)
        return {
            "total": base.count(),
            "with_amount": base.filter(DocumentModel.amount.isnot(None)).count(),
            "needs_review": base.filter(DocumentModel.extraction_failed.is_(True)).count(),
        }


class CategoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> list[CategoryModel]:
        return self.db.query(CategoryModel).order_by(CategoryModel.name).all()

    def names(self) -> set[str]:
        return {name for (name,) in self.db.query(CategoryModel.name).all()}

    def allowed_types(self) -> set[str]:
        """Names a document may carry: the current set plus the default."""
        return self.names() | {DEFAULT_TYPE}

    def get_by_name(self, name: str) -> Optional[CategoryModel]:
        return self.db.query(CategoryModel).filter(CategoryModel.name == name).first()

    def create(self, name: str) -> CategoryModel:
        row = CategoryModel(id=str(uuid.uuid4()), name=name)
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise CategoryExistsError(name) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Category insert failed: {e}") from e
        self.db.refresh(row)
        return row

    def delete(self, category_id: str) -> Optional[CategoryModel]:
        row = self.db.query(CategoryModel).filter(CategoryModel.id == category_id).first()
        if row is None:
            return None
        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Category delete failed: {e}") from e
        return row

    def seed_defaults(self) -> int:
        """Insert any missing canonical type. Returns how many were added."""
        existing = self.names()
        added = 0
        for name in CANONICAL_TYPES:
            if name not in existing:
                self.db.add(CategoryModel(id=str(uuid.uuid4()), name=name))
                added += 1
        if added:
            self.db.commit()
            logger.info("Seeded %d default categories", added)
        return added
