"""HTTP/WebSocket surface for intake sessions and the incident dashboard."""
