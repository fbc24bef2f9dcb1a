"""HTTP/SSE façade for mcpbridge."""
