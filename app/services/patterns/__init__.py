"""
Pattern Services

Association rules, geographic clustering, temporal distributions,
co-occurrence and confidence statistics computed from the attribute store.
"""
