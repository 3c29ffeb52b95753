"""
Constants for the chat client core.
"""

# Persistence
PERSIST_DEBOUNCE_SECONDS = 0.5
STORAGE_KEY_PREFIX = "chat_"

# Identifier prefixes
LOCAL_ID_PREFIX = "local"

# Notification text
NOTIFICATION_TITLE_TEMPLATE = "New message from {peer}"

# User-facing error text
EMPTY_MESSAGE_TEXT = "Type a message."
NOT_CONNECTED_TEXT = "No connection to the server."
MISSING_CONTEXT_TEXT = "Could not start the chat."
