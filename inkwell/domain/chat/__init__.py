"""Direct chat: presence, real-time sessions and the HTTP surface."""
