"""mcpbridge - HTTP/SSE bridge for line-delimited JSON-RPC child processes."""

__version__ = "0.1.0"
__logo__ = "🌉"
