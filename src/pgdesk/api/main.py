"""
Executable entrypoint for the gateway API (``uvicorn pgdesk.api.main:app``).

Optionally connect at startup via environment variables:
  PG_HOST       (no default; when unset the dashboard connects via /api/connect)
  PG_PORT       (default: 5432)
  PG_DATABASE   (default: postgres)
  PG_USER       (default: postgres)
  PG_PASSWORD   (default: empty)
  PG_SSL        (default: false)
  PG_SSL_VERIFY (default: false)
  PG_SCHEMA     (default: public)
"""

from __future__ import annotations

from pgdesk.config import build_service, settings_from_env

from .app import create_app

service = build_service(settings_from_env())
app = create_app(service)
