"""dirserve serves a directory tree over HTTP, with directory listings, and
lets a site hook in Python plugins and per-URL scripts ahead of the files.
"""
