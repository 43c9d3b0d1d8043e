"""MCP server that generates images with Flux models on Replicate."""

__version__ = "0.1.0"
