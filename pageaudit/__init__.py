"""Page Audit Engine: accessibility, SEO and structure analysis with tiered reports."""

__version__ = "1.0.0"
