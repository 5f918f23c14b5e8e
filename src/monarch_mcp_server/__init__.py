"""
Monarch Money MCP Server - A read-only MCP server for Monarch Money.

This package provides a Model Context Protocol (MCP) server that enables
AI assistants to query Monarch Money for:
- Account balances and net worth
- Transactions, searches and spending breakdowns
- Current-month budgets and categories
- Balance history and investment portfolio performance

Security: Your Monarch token is read from the MONARCH_TOKEN environment
variable and only ever sent to Monarch's API.
"""

__version__ = "0.1.0"
__license__ = "MIT"
