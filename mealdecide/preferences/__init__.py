"""
User preference model.

Responsibilities:
- Hold the explicit preference profile a user sets by hand.
- Hold learned tag/restaurant weights and the price-penalty counter.
- Learn from decision feedback with bounded, sparse weight updates.
- Persist updates with an optimistic revision check.
"""
