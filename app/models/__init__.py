"""ORM model exports."""

from app.models.patent import PatentRecord

__all__ = [
	"PatentRecord",
]
