# SQLModel definitions, imported here so the metadata is populated.
from .base import IdMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .membership import Membership  # noqa: F401
from .invite import SelfServeInvite  # noqa: F401
from .board import Board  # noqa: F401
from .note import Note  # noqa: F401
