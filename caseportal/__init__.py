"""Case intake portal: case reviews, notes and evidence behind owner-or-admin access control."""

__version__ = "0.1.0"
