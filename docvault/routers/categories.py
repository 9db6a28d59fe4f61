"""
Category (document type) endpoints.

Documents reference categories by name only; deleting a category never
touches documents, it only drops the name from future selection.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from docvault.database import get_db
from docvault.errors import CategoryExistsError, PersistenceError
from docvault.repository import CategoryRepository
from docvault.schemas import DEFAULT_TYPE, Category, CategoryCreate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/categories", response_model=list[Category])
def list_categories(db: Session = Depends(get_db)):
    return CategoryRepository(db).list_all()


@router.post("/categories", response_model=Category, status_code=201)
def create_category(req: CategoryCreate, db: Session = Depends(get_db)):
    repo = CategoryRepository(db)
    if repo.get_by_name(req.name):
        raise HTTPException(status_code=409, detail=f"Category already exists: {req.name}")
    try:
        row = repo.create(req.name)
    except CategoryExistsError as e:
        # lost a race with a concurrent create of the same name
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        logger.error("Category create failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save category")
    logger.info("Created category %s (%s)", row.name, row.id)
    return row


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db)):
    repo = CategoryRepository(db)
    try:
        row = repo.delete(category_id)
    except PersistenceError as e:
        logger.error("Category delete failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to delete category")
    if row is None:
        raise HTTPException(status_code=404, detail="Category not found")
    logger.info("Deleted category %s; documents using it now display as %s", row.name, DEFAULT_TYPE)
    return {"message": "Category deleted successfully", "category_id": category_id}
