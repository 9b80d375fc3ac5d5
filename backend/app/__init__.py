# backend/app/__init__.py
from __future__ import annotations

"""
Marks `app` as a Python package.

Routers live in app/api, the streaming translator in app/services/streaming,
tool catalog and credentials in app/services/tools.
"""
