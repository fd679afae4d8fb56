# backend/app/routes/__init__.py
"""HTTP routers: unversioned operational endpoints plus the /api/v1 package."""
