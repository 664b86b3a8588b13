"""
Report Similarity Services

Composite tag/location/attribute similarity between reports of the same
category.
"""
