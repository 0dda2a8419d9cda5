"""
Template Repository Protocol
Defines persistence interface for MessageTemplate.
"""
from abc import abstractmethod
from typing import List, Optional, Protocol
from uuid import UUID

from src.templates.domain.entities.message_template import MessageTemplate


class TemplateRepository(Protocol):
    """
    Repository protocol for MessageTemplate.

    Implementations persist the status history together with the template and
    serialize concurrent writes to the same template.
    """

    @abstractmethod
    async def get_by_id(self, template_id: UUID) -> Optional[MessageTemplate]:
        """Retrieve template by ID."""
        ...

    @abstractmethod
    async def find_active_by_name(self, tenant_id: UUID, name: str) -> List[MessageTemplate]:
        """Templates with this name that are neither rejected nor superseded."""
        ...

    @abstractmethod
    async def list_children(self, parent_template_id: UUID) -> List[MessageTemplate]:
        """Versions whose parent_template_id is the given template."""
        ...

    @abstractmethod
    async def list_pending(self, limit: int = 50) -> List[MessageTemplate]:
        """Pending templates across tenants, oldest submission first."""
        ...

    @abstractmethod
    async def add(self, template: MessageTemplate) -> MessageTemplate:
        """Persist new template."""
        ...

    @abstractmethod
    async def update(self, template: MessageTemplate) -> MessageTemplate:
        """Update existing template."""
        ...

    @abstractmethod
    async def delete(self, template_id: UUID) -> None:
        """Remove template and its history."""
        ...
