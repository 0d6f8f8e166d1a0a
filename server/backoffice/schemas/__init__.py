"""Pydantic schemas for request/response validation."""

from .analytics import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .entity import *  # noqa: F403
from .health import *  # noqa: F403
from .ledger import *  # noqa: F403
from .passenger import *  # noqa: F403
