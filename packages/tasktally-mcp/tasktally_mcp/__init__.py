"""
Tasktally MCP server package.
"""
