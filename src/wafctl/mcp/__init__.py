"""MCP adapter — operation registry, tools, resources, and prompts."""
