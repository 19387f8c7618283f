"""
Decision engine.

Responsibilities:
- Score a user's saved items against budget, tags, query and preferences.
- Rank, truncate and attach softmax confidence to the top candidates.
- Persist each ranking as a Decision stamped with reproducibility hashes.
- Record feedback and intent events, and page through decision history.
"""
