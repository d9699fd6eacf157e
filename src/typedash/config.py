"""Chat engine configuration constants.

Centralizes magic numbers and configuration values for the chat engine.
"""

# Conversation limits
MAX_HISTORY = 50  # Messages kept in a session before the oldest are dropped
RATE_LIMIT_MS = 2000  # Minimum gap between accepted sends
MAX_ITERATIONS = 5  # Tool-calling rounds per user turn

# Tool execution
DEFAULT_SEARCH_QUERY = "*"
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 25
EMBEDDING_MIN_LENGTH = 10  # Numeric arrays longer than this are treated as vectors

# Reply condensation when a table is shown
CONDENSE_MAX_LENGTH = 200  # Replies at or under this length are kept verbatim
SUMMARY_SENTENCE_MAX_LENGTH = 150  # Longest first sentence usable as a summary

# Error message truncation
ERROR_SENTENCE_MAX_LENGTH = 150
ERROR_MESSAGE_MAX_LENGTH = 200

# Model defaults
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"

# Tool result messages
DENIED_RECORD_MESSAGE = "User denied this action"
DENIED_MODEL_MESSAGE = "User denied this action. Do not retry."
