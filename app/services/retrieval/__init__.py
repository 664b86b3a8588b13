"""
Report Retrieval Services

Query intent classification, query embedding and intent-weighted hybrid
(semantic + full-text) retrieval with lexical fallback.
"""
