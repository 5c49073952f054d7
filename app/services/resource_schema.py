"""
Resource descriptors: one per table exposed through the CRUD API.
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type

from pydantic import AfterValidator, BaseModel, confloat, create_model

from app.services.sql_guardrails import validate_identifier


def _reject_nul(value: str) -> str:
    # PostgreSQL text columns cannot store NUL
    if "\x00" in value:
        raise ValueError("must not contain NUL characters")
    return value


# Request bodies only accept finite floats and NUL-free strings
_REQUEST_TYPES: Dict[Any, Any] = {
    float: confloat(allow_inf_nan=False),
    str: Annotated[str, AfterValidator(_reject_nul)],
}


@dataclass(frozen=True)
class FieldSpec:
    """A column of a resource table, other than the primary key."""
    name: str
    python_type: Type[Any]
    sql_type: str
    required: bool = True

    def __post_init__(self):
        validate_identifier(self.name)

    @property
    def request_type(self) -> Any:
        """Type used to validate request bodies for this field."""
        return _REQUEST_TYPES.get(self.python_type, self.python_type)


@dataclass(frozen=True)
class ResourceSchema:
    """
    Describes a resource: URL segment, display names, table and fields.

    The same descriptor drives the SQL built by the repository, the request
    models and the response messages.
    """
    name: str
    label: str
    plural: str
    table: str
    fields: Tuple[FieldSpec, ...]
    primary_key: str = "id"

    def __post_init__(self):
        validate_identifier(self.table)
        validate_identifier(self.primary_key)
        if self.primary_key in self.field_names:
            raise ValueError(f"Field {self.primary_key!r} clashes with the primary key")

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def columns(self) -> List[str]:
        return [self.primary_key] + self.field_names

    @property
    def required_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.required]

    def create_model(self) -> Type[BaseModel]:
        """Request body for POST: required fields are mandatory."""
        definitions: Dict[str, Any] = {}
        for f in self.fields:
            if f.required:
                definitions[f.name] = (f.request_type, ...)
            else:
                definitions[f.name] = (Optional[f.request_type], None)
        return create_model(f"{self.label}Create", **definitions)

    def update_model(self) -> Type[BaseModel]:
        """Request body for PUT: every field may be omitted."""
        definitions = {f.name: (Optional[f.request_type], None) for f in self.fields}
        return create_model(f"{self.label}Update", **definitions)


POKEMON = ResourceSchema(
    name="pokemon",
    label="Pokemon",
    plural="pokemons",
    table="pokemon_tb",
    fields=(
        FieldSpec("name", str, "TEXT"),
        FieldSpec("height", float, "DOUBLE PRECISION"),
        FieldSpec("weight", float, "DOUBLE PRECISION"),
        FieldSpec("avatar", str, "TEXT"),
    ),
)

FASHION = ResourceSchema(
    name="fashion",
    label="Fashion",
    plural="fashions",
    table="fashion_tb",
    fields=(
        FieldSpec("name", str, "TEXT"),
        FieldSpec("height", float, "DOUBLE PRECISION"),
        FieldSpec("weight", float, "DOUBLE PRECISION"),
        FieldSpec("avatar", str, "TEXT"),
        FieldSpec("color", str, "TEXT", required=False),
    ),
)

RESOURCES: Tuple[ResourceSchema, ...] = (FASHION, POKEMON)
