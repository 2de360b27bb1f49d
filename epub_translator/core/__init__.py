"""
Translation core: segmentation, scheduling, streaming and caching.
"""
