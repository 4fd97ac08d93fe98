"""Runtime domain evolution backend.

Captures low-confidence conversational turns, clusters them, proposes new record
schemas for review, and deploys approved schemas as live tables.
"""

__version__ = "0.1.0"
