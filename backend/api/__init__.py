"""SandboxSQL HTTP API."""
