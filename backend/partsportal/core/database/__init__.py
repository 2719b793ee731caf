from partsportal.core.database.base import Base

__all__ = ["Base"]
