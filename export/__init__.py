"""Export-Modul: Terminal-Wochenansicht der Einheiten."""

from export.week_view import print_week, render_week_rows, week_sessions

__all__ = ["print_week", "render_week_rows", "week_sessions"]
