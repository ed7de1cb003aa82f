# API endpoints
from . import health, split, jobs

__all__ = ["health", "split", "jobs"]
