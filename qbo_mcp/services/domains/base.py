"""Generic engine shared by the QuickBooks Online domain handlers.

Each domain module only declares a table of operations. The operation kinds
here own argument validation, query filter building and the upstream call:

- QueryOperation: SELECT statement with optional AND-joined conditions
- GetOperation: read one entity by ID
- CreateOperation: create an entity from passthrough fields
- ReportOperation: read a report with query parameters

Filter values are substituted as quoted literals. Single quotes and
backslashes inside a value are backslash-escaped, which is the QBO query
language's escaping; dates and plain search terms render unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from qbo_mcp.core.errors import InvalidArgumentsError, UnknownOperationError
from qbo_mcp.services.navigation import Domain, OperationDescriptor
from qbo_mcp.services.qbo_client import QBOClient, pagination_clause

logger = logging.getLogger(__name__)


DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

DEFAULT_START_POSITION = 1
DEFAULT_MAX_RESULTS = QBOClient.DEFAULT_PAGE_SIZE
MAX_RESULTS_LIMIT = QBOClient.MAX_PAGE_SIZE

PAGINATION_PROPERTIES: Dict[str, Any] = {
    "startPosition": {
        "type": "number",
        "minimum": 1,
        "description": "Starting position for pagination (1-based, default: 1)",
    },
    "maxResults": {
        "type": "number",
        "minimum": 1,
        "maximum": MAX_RESULTS_LIMIT,
        "description": "Maximum number of results to return (default: 100, max: 1000)",
    },
    "fetchAll": {
        "type": "boolean",
        "description": (
            "Fetch every page and return all matching records, using maxResults "
            "as the page size (startPosition is ignored)"
        ),
    },
}


def domain_prefix(domain: Domain) -> str:
    """Operation-name namespace owned by a domain."""
    return f"qbo_{domain.value}_"


def today() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


# =============================================================================
# Filter Rendering
# =============================================================================


def quote_literal(value: Any) -> str:
    """Render a value as a single-quoted QBO query literal."""
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def render_condition(field_name: str, operator: str, value: Any) -> str:
    """Render one `<field> <operator> '<value>'` condition."""
    return f"{field_name} {operator} {quote_literal(value)}"


# =============================================================================
# Argument Helpers
# =============================================================================


def is_missing(value: Any) -> bool:
    return value is None or value == ""


def require(arguments: Mapping[str, Any], name: str) -> Any:
    """Return a required argument.

    Raises:
        InvalidArgumentsError: If the argument is absent, null or empty
    """
    value = arguments.get(name)
    if is_missing(value):
        raise InvalidArgumentsError(name)
    return value


def positive_int(
    arguments: Mapping[str, Any],
    name: str,
    default: int,
    maximum: Optional[int] = None,
) -> int:
    """Read an integer argument that must be at least 1.

    Values above maximum are clamped to it.

    Raises:
        InvalidArgumentsError: If the value is not a whole number >= 1
    """
    value = arguments.get(name)
    if is_missing(value):
        return default

    number: Optional[int] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())

    if number is None or number < 1:
        raise InvalidArgumentsError(
            name,
            f"Invalid argument {name}: expected a whole number >= 1, got {value!r}",
        )
    if maximum is not None and number > maximum:
        return maximum
    return number


def validate_properties(
    properties: Mapping[str, Any],
    arguments: Mapping[str, Any],
) -> None:
    """Check enum and date-format constraints declared in a schema.

    Only arguments that are present are checked; presence of required
    arguments is checked separately.

    Raises:
        InvalidArgumentsError: Naming the first offending argument
    """
    for name, schema in properties.items():
        value = arguments.get(name)
        if is_missing(value):
            continue

        choices = schema.get("enum")
        if choices and value not in choices:
            raise InvalidArgumentsError(
                name,
                f"Invalid argument {name}: {value!r}. Expected one of: {', '.join(choices)}",
            )

        if schema.get("format") == "date":
            if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
                raise InvalidArgumentsError(
                    name,
                    f"Invalid argument {name}: {value!r}. Expected YYYY-MM-DD format",
                )


def date_property(description: str) -> Dict[str, Any]:
    return {"type": "string", "format": "date", "description": description}


# =============================================================================
# Operation Kinds
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class DomainOperation:
    """One tool of a domain: its descriptor plus how to execute it."""

    name: str
    summary: str
    properties: Dict[str, Any] = field(default_factory=dict)
    required: Tuple[str, ...] = ()

    def parameter_properties(self) -> Dict[str, Any]:
        return dict(self.properties)

    def required_fields(self) -> Tuple[str, ...]:
        return tuple(self.required)

    @property
    def descriptor(self) -> OperationDescriptor:
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": self.parameter_properties(),
        }
        required = self.required_fields()
        if required:
            schema["required"] = list(required)
        return OperationDescriptor(
            name=self.name,
            summary=self.summary,
            parameter_schema=schema,
        )

    def validate(self, arguments: Mapping[str, Any]) -> None:
        """Validate arguments before any upstream call.

        Raises:
            InvalidArgumentsError: Naming the missing or malformed field
        """
        for name in self.required_fields():
            require(arguments, name)
        validate_properties(self.parameter_properties(), arguments)

    async def execute(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        self.validate(arguments)
        return await self.run(client, arguments)

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        raise NotImplementedError


@dataclass(frozen=True, kw_only=True)
class QueryOperation(DomainOperation):
    """List or search entities with a SQL-like query.

    Conditions are appended in a fixed order (search term, status, date
    range) and joined with AND. The entity type is implied by FROM.
    """

    entity: str
    noun: str = ""
    date_field: Optional[str] = None
    search_field: Optional[str] = None
    status_conditions: Mapping[str, Callable[[], List[str]]] = field(default_factory=dict)

    @property
    def plural(self) -> str:
        return self.noun or f"{self.entity.lower()}s"

    def parameter_properties(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        if self.search_field:
            properties["term"] = {
                "type": "string",
                "description": f"Search term to match against {self.entity} {self.search_field}",
            }
        properties.update(PAGINATION_PROPERTIES)
        if self.status_conditions:
            properties["status"] = {
                "type": "string",
                "enum": list(self.status_conditions),
                "description": f"Filter {self.plural} by balance status",
            }
        if self.date_field:
            properties["startDate"] = date_property(
                f"Filter {self.plural} on or after this date (YYYY-MM-DD format)"
            )
            properties["endDate"] = date_property(
                f"Filter {self.plural} on or before this date (YYYY-MM-DD format)"
            )
        properties.update(self.properties)
        return properties

    def required_fields(self) -> Tuple[str, ...]:
        if self.search_field:
            return ("term", *self.required)
        return tuple(self.required)

    def build_conditions(self, arguments: Mapping[str, Any]) -> List[str]:
        conditions: List[str] = []

        if self.search_field:
            term = require(arguments, "term")
            conditions.append(render_condition(self.search_field, "LIKE", f"%{term}%"))

        status = arguments.get("status")
        if self.status_conditions and not is_missing(status):
            conditions.extend(self.status_conditions[status]())

        if self.date_field:
            start_date = arguments.get("startDate")
            end_date = arguments.get("endDate")
            if not is_missing(start_date):
                conditions.append(render_condition(self.date_field, ">=", start_date))
            if not is_missing(end_date):
                conditions.append(render_condition(self.date_field, "<=", end_date))

        return conditions

    def build_filter(self, arguments: Mapping[str, Any]) -> str:
        """Build the statement without its pagination clause."""
        sql = f"SELECT * FROM {self.entity}"
        conditions = self.build_conditions(arguments)
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"
        return sql

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        base_sql = self.build_filter(arguments)
        max_results = positive_int(
            arguments, "maxResults", DEFAULT_MAX_RESULTS, maximum=MAX_RESULTS_LIMIT
        )

        if arguments.get("fetchAll") is True:
            return await client.get_paginated(base_sql, page_size=max_results)

        start_position = positive_int(arguments, "startPosition", DEFAULT_START_POSITION)
        return await client.query(
            f"{base_sql} {pagination_clause(start_position, max_results)}"
        )


@dataclass(frozen=True, kw_only=True)
class GetOperation(DomainOperation):
    """Read a single entity by its ID."""

    resource: str
    id_field: str

    def parameter_properties(self) -> Dict[str, Any]:
        properties = {
            self.id_field: {
                "type": "string",
                "description": f"The unique {self.resource} ID",
            },
        }
        properties.update(self.properties)
        return properties

    def required_fields(self) -> Tuple[str, ...]:
        return (self.id_field, *self.required)

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        entity_id = quote(str(arguments[self.id_field]), safe="")
        return await client.get(f"{self.resource}/{entity_id}")


@dataclass(frozen=True, kw_only=True)
class CreateOperation(DomainOperation):
    """Create an entity. Declared fields that are present pass through unchanged."""

    resource: str

    def build_body(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            name: arguments[name]
            for name in self.properties
            if not is_missing(arguments.get(name))
        }

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        return await client.post(self.resource, self.build_body(arguments))


@dataclass(frozen=True, kw_only=True)
class ReportOperation(DomainOperation):
    """Read a named report; declared arguments become query parameters."""

    report: str

    def build_params(self, arguments: Mapping[str, Any]) -> Dict[str, str]:
        return {
            name: str(arguments[name])
            for name in self.properties
            if not is_missing(arguments.get(name))
        }

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        return await client.get(f"reports/{self.report}", self.build_params(arguments))


# =============================================================================
# Domain Handler
# =============================================================================


class DomainHandler:
    """Owns one domain's operation table and dispatches calls into it.

    Every operation name must start with the domain's prefix; the router
    relies on that to route by prefix alone.
    """

    def __init__(
        self,
        domain: Domain,
        operations: Sequence[DomainOperation],
        prefix: Optional[str] = None,
    ):
        self.domain = domain
        self.prefix = prefix or domain_prefix(domain)
        self._operations: Dict[str, DomainOperation] = {}

        for operation in operations:
            if not operation.name.startswith(self.prefix):
                raise ValueError(
                    f"Operation {operation.name} does not use the {self.prefix} prefix"
                )
            if operation.name in self._operations:
                raise ValueError(f"Duplicate operation name: {operation.name}")
            self._operations[operation.name] = operation

        self.descriptors: Tuple[OperationDescriptor, ...] = tuple(
            operation.descriptor for operation in operations
        )

    @property
    def operation_names(self) -> List[str]:
        return list(self._operations)

    def owns(self, name: str) -> bool:
        return name.startswith(self.prefix)

    def get_operation(self, name: str) -> DomainOperation:
        """Look up an operation of this domain.

        Raises:
            UnknownOperationError: If the domain has no such operation
        """
        operation = self._operations.get(name)
        if operation is None:
            raise UnknownOperationError(
                name,
                f"Unknown {self.domain.value} tool: {name}. "
                f"Available tools: {', '.join(self._operations)}",
            )
        return operation

    async def handle(
        self,
        name: str,
        arguments: Mapping[str, Any],
        client: QBOClient,
    ) -> Any:
        """Run one operation and return the raw upstream JSON."""
        operation = self.get_operation(name)
        logger.debug(f"Running {self.domain.value} operation {name}")
        return await operation.execute(client, arguments)
