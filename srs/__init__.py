"""
Spaced-repetition review scheduler.

Subpackages:
- scheduling: pure interval / ease state machine
- storage: card repository port and adapters
- analytics: review-event aggregation
"""
