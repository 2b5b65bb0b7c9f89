"""
Declarative entity descriptors.

Entity metadata is described explicitly and attached to each entity class
when the class is defined, so analysis never has to inspect annotations or
source code. A host application declares entities like::

    @entity(
        fields=[
            column("Id", int, key=True, generated=True),
            column("Name", str, required=True, max_length=100),
            collection("Users", "User"),
        ],
        indexes=[index("Name", unique=True)],
        audit=audit_fields(),
    )
    class Company:
        pass

and registers them in an EntityRegistry with a logical name.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import ModelDefinitionError
from .models import OnDelete

DESCRIPTOR_ATTRIBUTE = '__entity_descriptor__'

# Python types accepted by column() and the primitive names they map to
PYTHON_TYPE_NAMES: Dict[type, str] = {
    bool: 'bool',
    int: 'int',
    float: 'float',
    Decimal: 'decimal',
    str: 'str',
    bytes: 'bytes',
    datetime: 'datetime',
    date: 'date',
}


class FieldKind(str, Enum):
    """Kind of declared entity field."""
    SCALAR = "scalar"
    REFERENCE = "reference"
    COLLECTION = "collection"


class FieldDescriptor(BaseModel):
    """Pre-resolved metadata of one entity field."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    kind: FieldKind = FieldKind.SCALAR
    python_type: str = Field(default='str', description="Primitive type name, e.g. 'int' or 'str'")
    target: Optional[str] = Field(None, description="Related entity name for navigation fields")
    column_name: Optional[str] = None
    column_type: Optional[str] = Field(None, description="Explicit SQL type, e.g. 'VARCHAR(100)'")
    required: bool = False
    optional: bool = True
    max_length: Optional[int] = Field(None, gt=0)
    key: bool = False
    generated: bool = False
    foreign_key: Optional[str] = Field(None, description="Navigation or entity name the key points to")
    foreign_key_table: Optional[str] = Field(None, description="Explicit referenced table")
    referenced_column: Optional[str] = None
    on_delete: OnDelete = OnDelete.CASCADE
    index: bool = False
    unique: bool = False
    not_mapped: bool = False

    @property
    def is_navigation(self) -> bool:
        return self.kind != FieldKind.SCALAR


class IndexDescriptor(BaseModel):
    """An index declared on an entity."""

    model_config = ConfigDict(frozen=True)

    columns: Tuple[str, ...] = Field(..., min_length=1)
    unique: bool = False
    name: Optional[str] = None


class AuditFieldsDescriptor(BaseModel):
    """Audit timestamp columns an entity opts into."""

    model_config = ConfigDict(frozen=True)

    created_at: bool = True
    updated_at: bool = True
    deleted_at: bool = True


class EntityDescriptor(BaseModel):
    """
    Complete declarative description of one entity.

    ``table`` overrides the table name; when absent the pluralized
    ``entity_name`` is used.
    """

    model_config = ConfigDict(frozen=True)

    entity_name: str = ''
    table: Optional[str] = None
    primary_key: Tuple[str, ...] = Field(default_factory=tuple)
    fields: Tuple[FieldDescriptor, ...] = Field(default_factory=tuple)
    indexes: Tuple[IndexDescriptor, ...] = Field(default_factory=tuple)
    audit: Optional[AuditFieldsDescriptor] = None


def _type_name(python_type: Union[type, str]) -> str:
    if isinstance(python_type, str):
        return python_type
    return PYTHON_TYPE_NAMES.get(python_type, getattr(python_type, '__name__', 'str'))


def column(name: str, python_type: Union[type, str] = str, *,
           required: bool = False, optional: bool = True,
           max_length: Optional[int] = None, key: bool = False,
           generated: bool = False, foreign_key: Optional[str] = None,
           foreign_key_table: Optional[str] = None,
           referenced_column: Optional[str] = None,
           on_delete: Union[OnDelete, str] = OnDelete.CASCADE,
           column_name: Optional[str] = None, column_type: Optional[str] = None,
           index: bool = False, unique: bool = False,
           not_mapped: bool = False) -> FieldDescriptor:
    """
    Describe a scalar field mapped to a column.

    Args:
        name: Field name (also the column name unless column_name is given)
        python_type: Python type or primitive type name
        required: Column is NOT NULL
        optional: Field type admits None
        max_length: Maximum string length
        key: Field is part of the primary key
        generated: Value is database generated (identity)
        foreign_key: Navigation or entity name the field references
        foreign_key_table: Explicit referenced table name
        referenced_column: Referenced column (defaults to the target's key)
        on_delete: Delete behavior of the foreign key
        column_name: Column name override
        column_type: Explicit SQL type such as "VARCHAR(100)"
        index: Create a single-column index
        unique: Create a single-column unique index
        not_mapped: Exclude the field from the table

    Returns:
        FieldDescriptor
    """
    return FieldDescriptor(
        name=name,
        kind=FieldKind.SCALAR,
        python_type=_type_name(python_type),
        column_name=column_name,
        column_type=column_type,
        required=required,
        optional=optional and not required and not key,
        max_length=max_length,
        key=key,
        generated=generated,
        foreign_key=foreign_key,
        foreign_key_table=foreign_key_table,
        referenced_column=referenced_column,
        on_delete=OnDelete(on_delete),
        index=index,
        unique=unique,
        not_mapped=not_mapped,
    )


def reference(name: str, target: str) -> FieldDescriptor:
    """Describe an object-valued navigation field."""
    return FieldDescriptor(name=name, kind=FieldKind.REFERENCE, python_type='object', target=target)


def collection(name: str, target: str) -> FieldDescriptor:
    """Describe a collection-valued navigation field."""
    return FieldDescriptor(name=name, kind=FieldKind.COLLECTION, python_type='list', target=target)


def index(*columns: str, unique: bool = False, name: Optional[str] = None) -> IndexDescriptor:
    """Describe an entity-level index."""
    return IndexDescriptor(columns=tuple(columns), unique=unique, name=name)


def audit_fields(created_at: bool = True, updated_at: bool = True,
                 deleted_at: bool = True) -> AuditFieldsDescriptor:
    """Opt an entity into CreatedAt/UpdatedAt/DeletedAt columns."""
    return AuditFieldsDescriptor(created_at=created_at, updated_at=updated_at, deleted_at=deleted_at)


def entity(table: Optional[str] = None, *,
           fields: Sequence[FieldDescriptor] = (),
           indexes: Sequence[IndexDescriptor] = (),
           primary_key: Sequence[str] = (),
           audit: Optional[AuditFieldsDescriptor] = None):
    """
    Class decorator attaching an EntityDescriptor to an entity class.

    Args:
        table: Explicit table name
        fields: Field descriptors in declaration order
        indexes: Entity-level indexes
        primary_key: Primary key field names (in addition to key=True fields)
        audit: Audit field options

    Returns:
        Decorator returning the class unchanged apart from the descriptor
    """
    def decorator(cls):
        descriptor = EntityDescriptor(
            entity_name=cls.__name__,
            table=table,
            primary_key=tuple(primary_key),
            fields=tuple(fields),
            indexes=tuple(indexes),
            audit=audit,
        )
        setattr(cls, DESCRIPTOR_ATTRIBUTE, descriptor)
        return cls
    return decorator


def get_descriptor(entity_type: Any) -> Optional[EntityDescriptor]:
    """Return the descriptor attached to an entity class, if any."""
    descriptor = getattr(entity_type, DESCRIPTOR_ATTRIBUTE, None)
    if isinstance(descriptor, EntityDescriptor):
        return descriptor
    return None


class RegisteredEntity(BaseModel):
    """One entry of an EntityRegistry."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    entity_type: Any = None
    logical_name: str
    descriptor: Optional[EntityDescriptor] = None


class EntityRegistry:
    """
    Explicit list of the host's entities.

    Replaces discovery by scanning accessor source: the host registers each
    entity type together with the logical name it is exposed under.
    """

    def __init__(self, entities: Optional[Sequence[Union[Type, Tuple[Type, str]]]] = None):
        self._entries: List[RegisteredEntity] = []
        for item in entities or ():
            if isinstance(item, tuple):
                self.register(item[0], item[1])
            else:
                self.register(item)

    def register(self, entity_type: Any = None, logical_name: Optional[str] = None,
                 descriptor: Optional[EntityDescriptor] = None) -> 'EntityRegistry':
        """
        Register an entity.

        Args:
            entity_type: Entity class (may carry a descriptor from @entity)
            logical_name: Name the host exposes the entity set under
            descriptor: Explicit descriptor, overriding the attached one

        Returns:
            The registry, for chaining

        Raises:
            ModelDefinitionError: If neither an entity type nor a descriptor is given
        """
        if entity_type is None and descriptor is None:
            raise ModelDefinitionError("register() needs an entity type or a descriptor")
        if descriptor is None and entity_type is not None:
            descriptor = get_descriptor(entity_type)
        if logical_name is None:
            if entity_type is not None:
                logical_name = getattr(entity_type, '__name__', str(entity_type))
            else:
                logical_name = descriptor.entity_name or (descriptor.table or '')
        self._entries.append(RegisteredEntity(
            entity_type=entity_type, logical_name=logical_name, descriptor=descriptor
        ))
        return self

    @property
    def entries(self) -> List[RegisteredEntity]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)
