"""
Scoring package: per-user issue metrics and the team stats reducer.
"""
