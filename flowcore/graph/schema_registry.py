"""
Node-type schema registry.

Pure data describing every node type the validator and healer know about:
its schema category, the config keys it requires, and its default config.
The registry is consulted, never mutated; ``default_config_for`` hands out
deep copies.

Schema categories follow the editor's node library:

- triggers:    graph entry points (webhook, schedule, manual)
- source:      nodes that fetch data (HTTP request, databases, sheets)
- logic:       transformation, branching and flow control
- action:      side-effecting integrations (email, chat, tickets)
- destination: terminal sinks (log output, HTTP response, file upload)
- ai:          LLM-backed nodes

Some types appear twice (e.g. ``http_post`` as action and destination);
lookups without a category return the first entry.
"""

import copy
import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from flowcore.graph.node import NodeCategory


class SchemaCategory(StrEnum):
    """Category of a node type in the schema library."""

    TRIGGERS = "triggers"
    SOURCE = "source"
    LOGIC = "logic"
    ACTION = "action"
    DESTINATION = "destination"
    AI = "ai"


class NodeSchema(BaseModel):
    """Schema for one node type."""

    type: str
    category: SchemaCategory
    required_properties: tuple[str, ...] = ()
    default_config: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


def _schema(
    type: str,
    category: SchemaCategory,
    required: tuple[str, ...] = (),
    **defaults: Any,
) -> NodeSchema:
    return NodeSchema(
        type=type, category=category, required_properties=required, default_config=defaults
    )


_T = SchemaCategory.TRIGGERS
_S = SchemaCategory.SOURCE
_L = SchemaCategory.LOGIC
_A = SchemaCategory.ACTION
_D = SchemaCategory.DESTINATION
_AI = SchemaCategory.AI

NODE_LIBRARY: tuple[NodeSchema, ...] = (
    # Triggers
    _schema("manual_trigger", _T),
    _schema("webhook", _T, ("method",), method="POST", webhookUrl=""),
    _schema("schedule", _T, ("cron",), cron="0 9 * * *", schedule="0 9 * * *"),
    _schema("schedule_cron", _T, ("cron", "schedule"), cron="0 9 * * *", schedule="0 9 * * *"),
    _schema("http_trigger", _T, ("url", "method"), url="", method="GET", interval=60000, headers={}),
    _schema("app_trigger", _T, ("triggerType",), triggerType="event"),
    _schema("polling_trigger", _T, ("endpoint", "interval"), endpoint="", interval=60000),
    _schema("chat_trigger", _T),
    _schema("error_trigger", _T),
    # Sources
    _schema(
        "http_request",
        _S,
        ("url", "method"),
        url="",
        method="GET",
        headers={},
        timeout=30000,
        authentication="none",
        inputMapping={},
    ),
    _schema(
        "google_sheets",
        _S,
        ("operation", "spreadsheetId"),
        operation="read",
        spreadsheetId="",
        sheetName="",
        range="",
        authentication="oauth",
    ),
    _schema(
        "google_sheets_read",
        _S,
        ("spreadsheetId",),
        operation="read",
        spreadsheetId="",
        sheetName="",
        range="",
        authentication="oauth",
    ),
    _schema("database_read", _S, ("table",), table="", columns="*", filters={}),
    _schema("mysql", _S, ("host", "database", "query"), host="", database="", query=""),
    _schema("postgresql", _S, ("host", "database", "query"), host="", database="", query=""),
    _schema("airtable", _S, ("baseId", "tableId"), baseId="", tableId=""),
    _schema("notion", _S, ("databaseId",), databaseId=""),
    _schema("crm_source", _S, ("crmType", "endpoint"), crmType="salesforce", endpoint=""),
    # Logic: data transformation
    _schema("set_variable", _L, ("name", "value"), name="", value="", fieldMappings={}),
    _schema("set", _L, ("name", "value"), name="", value="", fieldMappings={}),
    _schema("edit_fields", _L, ("fieldMappings",), fieldMappings={}),
    _schema("rename_keys", _L, ("fieldMappings",), fieldMappings={}),
    _schema("split_items", _L, ("array", "delimiter"), array="", delimiter=","),
    _schema("split_out_items", _L, ("array", "delimiter"), array="", delimiter=","),
    _schema("text_formatter", _L, ("template",), template=""),
    _schema("merge_data", _L, ("mode",), mode="merge"),
    _schema("merge", _L, ("mode",), mode="merge"),
    _schema("javascript", _L, ("code",), code="return input;"),
    _schema("json_parser", _L, (), expression=""),
    # Logic: conditions and flow control
    _schema("if_else", _L, ("condition",), condition=""),
    _schema("switch", _L, ("expression", "cases"), expression="", cases=[]),
    _schema("filter", _L, ("array", "condition"), array="", condition=""),
    _schema("wait", _L, ("duration",), duration=1000),
    _schema(
        "error_handler",
        _L,
        (),
        retries=3,
        retryDelay=1000,
        errorMessage="An error occurred",
    ),
    _schema("stop_error", _L, ("errorMessage",), errorMessage="An error occurred"),
    _schema("stop_and_error", _L, ("errorMessage",), errorMessage="An error occurred"),
    _schema("noop", _L),
    _schema("loop", _L, ("array",), array="", maxIterations=100),
    # Logic: code execution (bodies are external integrations)
    _schema("function", _L, ("language", "code"), language="javascript", code=""),
    _schema("function_item", _L, ("language", "code"), language="javascript", code=""),
    _schema("code_execution", _L, ("language", "code"), language="javascript", code=""),
    _schema("code", _L, ("language", "code"), language="javascript", code=""),
    # Actions
    _schema(
        "email_resend",
        _A,
        ("to", "from", "subject", "body"),
        to="",
        **{"from": ""},
        subject="",
        body="",
        credentials="resend_api_key",
    ),
    _schema(
        "send_email",
        _A,
        ("to", "from", "subject", "body"),
        to="",
        **{"from": ""},
        subject="",
        body="",
        credentials="resend_api_key",
    ),
    _schema(
        "slack_message",
        _A,
        ("webhookUrl", "message"),
        webhookUrl="",
        message="",
        channel="",
        credentials="slack_webhook",
    ),
    _schema("slack_webhook", _A, ("webhookUrl", "text"), webhookUrl="", text=""),
    _schema("discord_webhook", _A, ("webhookUrl", "content"), webhookUrl="", content=""),
    _schema("http_post", _A, ("url",), url="", method="POST", headers={}),
    _schema("whatsapp", _A, ("to", "message"), to="", message=""),
    _schema("telegram", _A, ("chatId", "message"), chatId="", message=""),
    _schema(
        "google_sheets_create_row",
        _A,
        ("spreadsheetId",),
        operation="append",
        spreadsheetId="",
        sheetName="",
    ),
    _schema("update_crm", _A, ("crmType", "endpoint"), crmType="salesforce", endpoint=""),
    _schema("jira_create_ticket", _A, ("projectKey", "issueType"), projectKey="", issueType="Task"),
    _schema("database_write", _A, ("table", "operation"), table="", operation="insert"),
    # Destinations
    _schema("database_insert", _D, ("table",), table="", operation="insert"),
    _schema("http_response", _D, ("statusCode",), statusCode=200, responseFormat="json"),
    _schema(
        "email_destination",
        _D,
        ("to", "from", "subject", "body"),
        to="",
        **{"from": ""},
        subject="",
        body="",
    ),
    _schema("log_output", _D, ("message",), message="", level="info"),
    _schema("file_upload", _D, ("storageType", "path"), storageType="s3", path=""),
    _schema(
        "notification",
        _D,
        ("notificationMessage",),
        notificationMessage="Workflow completed",
    ),
    # AI
    _schema("openai_gpt", _AI, ("prompt",), model="gpt-4o", prompt="", temperature=0.7, memory=10),
    _schema(
        "anthropic_claude",
        _AI,
        ("prompt",),
        model="claude-3-5-sonnet",
        prompt="",
        temperature=0.7,
        memory=10,
    ),
    _schema(
        "google_gemini", _AI, ("prompt",), model="gemini-pro", prompt="", temperature=0.7, memory=10
    ),
    _schema("memory", _AI, (), operation="retrieve", maxMessages=10),
    _schema("llm_chain", _AI, (), steps=[]),
    _schema("ai_agent", _AI, ("prompt",), prompt=""),
)

# Legacy or unsupported types and the supported type that replaces them
ALTERNATIVE_TYPES: dict[str, str] = {
    "schedule_cron": "schedule",
    "google_sheets_read": "google_sheets",
    "google_sheets_create_row": "google_sheets",
    "send_email": "email_resend",
    "database_insert": "database_write",
    "http_response": "http_post",
    "email_destination": "email_resend",
    "split_out_items": "split_items",
    "code": "javascript",
    "code_execution": "javascript",
    "cron": "schedule",
    "manual": "manual_trigger",
    "log": "log_output",
    "condition": "if_else",
    "if": "if_else",
    "delay": "wait",
}

PLACEHOLDER_VALUES: dict[str, Any] = {
    "url": "",
    "webhookUrl": "",
    "endpoint": "",
    "method": "GET",
    "cron": "0 9 * * *",
    "schedule": "0 9 * * *",
    "code": "return input;",
    "duration": 1000,
    "timeout": 1000,
    "interval": 60000,
    "authentication": "none",
    "credentials": "placeholder",
    "triggerType": "event",
    "operation": "read",
    "errorMessage": "An error occurred",
    "statusCode": 200,
    "storageType": "s3",
    "notificationMessage": "Workflow completed",
    "issueType": "Task",
    "crmType": "salesforce",
    "delimiter": ",",
    "fieldMappings": {},
    "cases": [],
    "language": "javascript",
    "mode": "merge",
}

# Node types that exist only to choose a branch
BRANCHING_TYPES = frozenset({"if_else", "switch"})

# Node types that count as error handling for the healer's safety net
ERROR_HANDLING_TYPES = frozenset({"error_handler", "stop_error", "stop_and_error"})

_SCHEMA_TO_NODE_CATEGORY = {
    SchemaCategory.TRIGGERS: NodeCategory.TRIGGER,
    SchemaCategory.SOURCE: NodeCategory.DATA,
    SchemaCategory.LOGIC: NodeCategory.LOGIC,
    SchemaCategory.ACTION: NodeCategory.OUTPUT,
    SchemaCategory.DESTINATION: NodeCategory.OUTPUT,
    SchemaCategory.AI: NodeCategory.AI,
}

_TERMINAL_SCHEMA_CATEGORIES = {SchemaCategory.ACTION, SchemaCategory.DESTINATION}


def get_schema(node_type: str, category: SchemaCategory | None = None) -> NodeSchema | None:
    """Return the first schema for a type, optionally restricted to a category."""
    for schema in NODE_LIBRARY:
        if schema.type != node_type:
            continue
        if category is None or schema.category == category:
            return schema
    return None


def schemas_by_category(category: SchemaCategory) -> list[NodeSchema]:
    return [s for s in NODE_LIBRARY if s.category == category]


def node_category_for(schema_category: SchemaCategory) -> NodeCategory:
    """Map a schema category onto the node category stored on a NodeSpec."""
    return _SCHEMA_TO_NODE_CATEGORY[schema_category]


def is_terminal(node_type: str, category: NodeCategory | None) -> bool:
    """True for output-category nodes and action/destination-classified types."""
    if category == NodeCategory.OUTPUT:
        return True
    return any(
        s.type == node_type and s.category in _TERMINAL_SCHEMA_CATEGORIES for s in NODE_LIBRARY
    )


def alternative_type(node_type: str) -> str | None:
    """Best-effort supported replacement for an unknown type."""
    alternative = ALTERNATIVE_TYPES.get(node_type)
    if alternative and get_schema(alternative) is not None:
        return alternative
    return None


def placeholder_value(key: str) -> Any:
    """Type-appropriate placeholder for a required config key with no default."""
    return copy.deepcopy(PLACEHOLDER_VALUES.get(key, ""))


def default_config_for(node_type: str) -> dict[str, Any]:
    """Deep copy of a type's default config ({} for unknown types)."""
    schema = get_schema(node_type)
    return copy.deepcopy(schema.default_config) if schema else {}


def switch_cases(config: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Normalize a switch node's ``cases`` config.

    Accepts a list or a JSON string of ``{"value": ..., "label": ...}``
    entries; bare values are wrapped. Anything unparseable yields [].
    """
    raw = config.get("cases")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    cases = []
    for entry in raw:
        if isinstance(entry, dict) and "value" in entry:
            cases.append(entry)
        elif not isinstance(entry, (dict, list)):
            cases.append({"value": entry})
    return cases


def switch_case_values(config: dict[str, Any]) -> list[str]:
    """Case values as the strings edge handles are compared against."""
    values = []
    for case in switch_cases(config):
        value = case["value"]
        if isinstance(value, bool):
            values.append("true" if value else "false")
        else:
            values.append(str(value))
    return values
