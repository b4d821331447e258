"""Lost & found register wizard: map, transform and validate CSV exports."""

__version__ = "0.1.0"
