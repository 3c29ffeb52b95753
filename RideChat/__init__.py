r"""
    ____  _     __     ________          __
   / __ \(_)___/ /__  / ____/ /_  ____ _/ /_
  / /_/ / / __  / _ \/ /   / __ \/ __ `/ __/
 / _, _/ / /_/ /  __/ /___/ / / / /_/ / /_
/_/ |_/_/\__,_/\___/\____/_/ /_/\__,_/\__/

RideChat Project - ride-scoped chat client core.

Keeps one conversation's message log in sync with the server:
optimistic sends, duplicate-safe inbound handling, timestamp ordering
and debounced local persistence.
"""

__version__ = "1.0.0"
