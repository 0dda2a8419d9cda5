# src/templates/domain/value_objects/template_status.py
"""
Template Status Enum
"""
from enum import Enum


class TemplateStatus(str, Enum):
    """
    Template approval status.

    Flow: draft → pending → approved | rejected
    approved → superseded once a newer version of the same lineage is approved
    """
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"

    @property
    def is_terminal(self) -> bool:
        return self in (TemplateStatus.REJECTED, TemplateStatus.SUPERSEDED)

    @property
    def is_open(self) -> bool:
        """Draft or Pending: a version still on its way to a decision."""
        return self in (TemplateStatus.DRAFT, TemplateStatus.PENDING)

    @property
    def is_deletable(self) -> bool:
        return self in (TemplateStatus.DRAFT, TemplateStatus.REJECTED)
