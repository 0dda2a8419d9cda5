"""
Shared Domain Layer
Pure domain contracts with no framework dependencies
"""
from src.shared.domain.base_aggregate_root import BaseAggregateRoot
from src.shared.domain.base_entity import BaseEntity, utcnow
from src.shared.domain.domain_event import DomainEvent
from src.shared.domain.result import Failure, Result, Success

__all__ = [
    "BaseEntity",
    "BaseAggregateRoot",
    "DomainEvent",
    "Result",
    "Success",
    "Failure",
    "utcnow",
]
