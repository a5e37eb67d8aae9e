"""HTTP and WebSocket transport for framesight sessions."""
