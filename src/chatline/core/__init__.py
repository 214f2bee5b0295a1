"""Core configuration, security helpers and error taxonomy."""
