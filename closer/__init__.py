"""
closer - sales-conversation decision core.

Turns (message text, session history, workspace context) into a
ConversationDecision before any language generation runs.
"""
__version__ = "0.4.0"
