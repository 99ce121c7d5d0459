"""Re-export Base for ORM models."""

from portal.database import Base

__all__ = ["Base"]
