"""HTTP middleware: API key gate, request logging, security headers and rate limits."""
