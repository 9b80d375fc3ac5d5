# backend/app/api/tools.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app import schemas
from app.services.tools import get_tool_catalog
from app.services.tools.catalog import ToolCatalog

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("", response_model=list[schemas.ToolInfo])
def list_tools(catalog: ToolCatalog = Depends(get_tool_catalog)) -> list[schemas.ToolInfo]:
    """
    Return the catalog of assistant CLIs and whether each is on PATH.
    """
    return [
        schemas.ToolInfo(
            name=spec.name,
            aliases=list(spec.aliases),
            kind=spec.kind.value,
            command=spec.command,
            installed=catalog.is_installed(spec),
            structured_output=spec.structured_output,
            description=spec.description,
        )
        for spec in catalog
    ]
