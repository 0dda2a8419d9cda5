from src.templates.domain.entities.message_template import MessageTemplate
from src.templates.domain.entities.status_history import StatusHistory, StatusHistoryEntry

__all__ = ["MessageTemplate", "StatusHistory", "StatusHistoryEntry"]
