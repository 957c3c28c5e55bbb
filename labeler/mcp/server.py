"""
MCP Server Implementation
Exposes the transaction analytics operations as tools to an AI orchestrator
"""

from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from labeler.core.logging import get_logger
from labeler.mcp.tools import TOOL_HANDLERS, _error
from labeler.schemas.analytics import (
    AnomalyRequest,
    CategorySearchRequest,
    CategorySpendingRequest,
    CategoryTransactionsRequest,
    DriftRequest,
    DuplicatePaymentRequest,
    ProfileRequest,
    RetrievalRequest,
    TopExpenseCategoriesRequest,
)
from labeler.schemas.transaction import TransactionCreate

logger = get_logger(__name__)


def build_tools() -> list[Tool]:
    """Tool definitions; input schemas come from the request models."""
    return [
        Tool(
            name="classify_query",
            description=(
                "Classify a free-text question into a retrieval intent "
                "(content, amount, date or category)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "User question"},
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="search_transactions",
            description=(
                "Semantic similarity search over transactions. The intent picks the "
                "embedding index and is classified from the query when omitted. "
                "Returns transactions with similarity scores in [0, 1]."
            ),
            inputSchema=RetrievalRequest.model_json_schema(),
        ),
        Tool(
            name="label_transaction",
            description=(
                "Store a new transaction and assign its category label from the five "
                "most similar historical transactions."
            ),
            inputSchema=TransactionCreate.model_json_schema(),
        ),
        Tool(
            name="detect_counterparty_drift",
            description=(
                "List transactions in the last current_days whose counterparty never "
                "appeared in the preceding historical_days."
            ),
            inputSchema=DriftRequest.model_json_schema(),
        ),
        Tool(
            name="detect_amount_anomalies",
            description=(
                "Flag current transactions whose amount deviates from the counterparty's "
                "historical baseline. Counterparties without history are reported as "
                "insufficient_data."
            ),
            inputSchema=AnomalyRequest.model_json_schema(),
        ),
        Tool(
            name="get_counterparty_profiles",
            description=(
                "Per-counterparty count, total, mean, stdev, min, max and first/last "
                "date over the last N months."
            ),
            inputSchema=ProfileRequest.model_json_schema(),
        ),
        Tool(
            name="search_categories",
            description=(
                "Find the spending categories closest in meaning to a phrase such as "
                "'car costs'. An empty query lists categories alphabetically."
            ),
            inputSchema=CategorySearchRequest.model_json_schema(),
        ),
        Tool(
            name="get_category_transactions",
            description=(
                "Largest transactions in the categories matching a phrase, over a date "
                "range or a year (default: current year)."
            ),
            inputSchema=CategoryTransactionsRequest.model_json_schema(),
        ),
        Tool(
            name="get_category_spending",
            description=(
                "Total debit spending in the categories matching a phrase, with a "
                "per-category breakdown, over a date range or a year."
            ),
            inputSchema=CategorySpendingRequest.model_json_schema(),
        ),
        Tool(
            name="get_top_expense_categories",
            description="Categories with the highest debit spending over a date range or a year.",
            inputSchema=TopExpenseCategoriesRequest.model_json_schema(),
        ),
        Tool(
            name="find_duplicate_payments",
            description=(
                "Repeated payments: same customer, payee, amount and direction, each "
                "within window_days of the previous one."
            ),
            inputSchema=DuplicatePaymentRequest.model_json_schema(),
        ),
        Tool(
            name="list_customers",
            description="Known customer names, alphabetically.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 50},
                },
            },
        ),
        Tool(
            name="validate_customer_name",
            description=(
                "Check a customer name before filtering by it; unknown names come back "
                "with the closest spellings."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "customer_name": {"type": "string", "description": "Name as typed"},
                },
            },
        ),
    ]


def create_mcp_server() -> Server:
    """
    Create MCP server with the analytics tools

    Returns:
        MCP Server instance with registered tools
    """
    server = Server("transaction-labeler")
    tools = build_tools()

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        logger.info("mcp_tool_called", tool_name=name, argument_names=sorted(arguments or {}))

        handler = TOOL_HANDLERS.get(name)
        if handler is None:
            return [TextContent(type="text", text=_error("UnknownTool", f"Unknown tool: {name}"))]

        result = await handler(**(arguments or {}))
        return [TextContent(type="text", text=result)]

    logger.info("mcp_server_created", tools_count=len(tools))

    return server
