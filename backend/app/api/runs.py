# backend/app/api/runs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import models, schemas
from app.db.session import get_db

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=list[schemas.StreamRunRead])
def list_runs(
    db: Session = Depends(get_db),
    tool: str | None = Query(default=None),
    status: models.StreamRunStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
) -> list[schemas.StreamRunRead]:
    query = db.query(models.StreamRun)
    if tool:
        query = query.filter(models.StreamRun.tool == tool)
    if status:
        query = query.filter(models.StreamRun.status == status)
    return query.order_by(models.StreamRun.started_at.desc()).limit(limit).all()


@router.get("/{run_id}", response_model=schemas.StreamRunRead)
def get_run(
    run_id: str,
    db: Session = Depends(get_db),
) -> schemas.StreamRunRead:
    run = (
        db.query(models.StreamRun)
        .filter(models.StreamRun.id == run_id)
        .first()
    )
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run
