from __future__ import annotations

"""backend/app/services/tools/__init__.py

Tool catalog and credential wiring.

This module exposes the two narrow collaborators the streaming pipeline
consumes, constructed once from settings:

- get_tool_catalog: read-only ToolCatalog shared by all requests
- get_credential_resolver: ordered credential providers

Both are FastAPI dependencies so tests can override them.
"""

from functools import lru_cache

from app.config import get_settings
from app.services.tools.catalog import ToolCatalog, default_tool_specs
from app.services.tools.credentials import CredentialResolver, default_credential_resolver


@lru_cache(maxsize=1)
def get_tool_catalog() -> ToolCatalog:
    return ToolCatalog(default_tool_specs(get_settings()))


@lru_cache(maxsize=1)
def get_credential_resolver() -> CredentialResolver:
    return default_credential_resolver(get_settings().credentials_store_path)
