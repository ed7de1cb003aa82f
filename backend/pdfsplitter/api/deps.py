"""
FastAPI dependencies

Everything a handler needs lives on app.state (created by create_app),
so each app instance, including the ones built in tests, has its own
registry, writer and settings.
"""

from fastapi import Depends, Request

from pdfsplitter.core.config import Settings
from pdfsplitter.modules.storage.job_registry import JobRegistry
from pdfsplitter.services.split_service import SplitService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_split_service(request: Request) -> SplitService:
    return request.app.state.split_service


def get_base_url(request: Request, settings: Settings = Depends(get_app_settings)) -> str:
    """<scheme>://<host> as seen by the client (honours X-Forwarded-Proto)"""
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme or "http"
    scheme = scheme.split(",")[0].strip()
    host = request.headers.get("host") or f"localhost:{settings.SERVER_PORT}"
    return f"{scheme}://{host}"
