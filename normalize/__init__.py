"""
Normalize package: entity models, raw-node normalization and date range helpers.
"""
