"""tradechat: streaming chat client core for an agentic trading assistant.

The backend answers each turn with a stream of server-sent events. This
package decodes that stream, folds it into an immutable conversation state
and projects workflows for display.
"""

__version__ = "0.1.0"
