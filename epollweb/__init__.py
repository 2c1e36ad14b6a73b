"""Event-driven HTTP server with form login and registration, and a web benchmark tool."""

__version__ = "0.1.0"