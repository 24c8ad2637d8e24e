"""MCP server exposing the school administration handlers as tools."""
