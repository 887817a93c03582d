"""Wire models for rule content: entries, conditions, effects and rewards."""
