"""Branch helpdesk: ticket lifecycle, attachment gating and notification fan-out."""

__version__ = "0.1.0"
