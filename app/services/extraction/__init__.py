"""
Attribute Extraction Services

Schema-constrained extraction of typed attributes from narrative reports,
fuzzy vocabulary validation, batch backfill and user corrections.
"""
