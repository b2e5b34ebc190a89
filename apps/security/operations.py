"""
Operations the access decision engine authorizes.

The set is closed: every operation class carries a ``kind`` from
OperationKind, and the engine keeps one handler per kind. Anything else
is denied.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from apps.security.constants import (
    APPEND, ASSIGN, CREATE, DELETE, READ, SHARE, WRITE
)
from apps.security.context import PrincipalRef


class OperationKind(Enum):
    CREATE = 'create'
    RETRIEVE = 'retrieve'
    RETRIEVE_MULTIPLE = 'retrieve_multiple'
    UPDATE = 'update'
    DELETE = 'delete'
    ASSIGN = 'assign'
    SET_STATE = 'set_state'
    ASSOCIATE = 'associate'
    SHARE = 'share'


@dataclass(frozen=True)
class RecordRef:
    """A record addressed by type and id."""

    entity_name: str
    id: uuid.UUID


@dataclass(frozen=True)
class Operation:
    """Base class for authorizable operations."""

    kind: ClassVar[OperationKind]
    access_right: ClassVar[Optional[int]] = None

    entity_name: str


@dataclass(frozen=True)
class CreateOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.CREATE
    access_right: ClassVar[Optional[int]] = CREATE

    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrieveOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.RETRIEVE
    access_right: ClassVar[Optional[int]] = READ

    record_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class RetrieveMultipleOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.RETRIEVE_MULTIPLE
    access_right: ClassVar[Optional[int]] = READ


@dataclass(frozen=True)
class UpdateOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.UPDATE
    access_right: ClassVar[Optional[int]] = WRITE

    record_id: Optional[uuid.UUID] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.DELETE
    access_right: ClassVar[Optional[int]] = DELETE

    record_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class AssignOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.ASSIGN
    access_right: ClassVar[Optional[int]] = ASSIGN

    record_id: Optional[uuid.UUID] = None
    assignee: Optional[PrincipalRef] = None


@dataclass(frozen=True)
class SetStateOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.SET_STATE
    access_right: ClassVar[Optional[int]] = WRITE

    record_id: Optional[uuid.UUID] = None
    state_code: int = 0


@dataclass(frozen=True)
class AssociateOperation(Operation):
    """
    Link a target record to related records through a relationship.

    The target needs Append; each related record needs AppendTo.
    """

    kind: ClassVar[OperationKind] = OperationKind.ASSOCIATE
    access_right: ClassVar[Optional[int]] = APPEND

    record_id: Optional[uuid.UUID] = None
    relationship: str = ''
    related: Tuple[RecordRef, ...] = ()


@dataclass(frozen=True)
class ShareOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.SHARE
    access_right: ClassVar[Optional[int]] = SHARE

    record_id: Optional[uuid.UUID] = None
    principal: Optional[PrincipalRef] = None
    access_mask: int = 0
