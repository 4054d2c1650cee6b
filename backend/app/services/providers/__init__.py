"""Provider transport and response heuristics.

Every generation provider follows the same async pattern:
  POST create task → (inline result | task id) → poll status → materialize
"""
