"""installpilot - vision-guided desktop automation and application installer."""

__version__ = "0.1.0"
