"""Agency billing: invoicing, recurring billing and form templates."""

__version__ = "1.0.0"
