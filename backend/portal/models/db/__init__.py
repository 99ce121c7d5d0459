"""SQLAlchemy 2.0 ORM models for the portal.

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata.
"""

from portal.models.db.base import Base  # noqa: F401
from portal.models.db.document import PortalDocument  # noqa: F401
