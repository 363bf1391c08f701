"""
Report package: text, Markdown, CSV, JSON and HTML renderers.
"""
