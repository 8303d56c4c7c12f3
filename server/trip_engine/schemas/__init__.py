"""Pydantic schemas for request/response validation."""

from .capacity import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .registration import *  # noqa: F403
from .statistics import *  # noqa: F403
from .trip import *  # noqa: F403
