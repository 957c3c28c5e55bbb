"""
MCP Server for the Transaction Labeler
Exposes retrieval, labeling, drift, anomaly, profile, category, duplicate and
customer tools via Model Context Protocol
"""

from labeler.mcp.server import create_mcp_server

__all__ = ["create_mcp_server"]
