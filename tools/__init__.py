"""Tool modules exposed to the orchestrating agent.

Each tool module exports MODULE_NAME, MODULE_VERSION, TOOLS and optionally
SYSTEM_PROMPT, initialize() and cleanup().
"""
