"""
Line Store.

Holds every ingested structured (XML) file as an ordered sequence of lines.
"""

from .store import FileProgress, LineStore, make_line_id, new_file_id, split_lines

__all__ = ["FileProgress", "LineStore", "make_line_id", "new_file_id", "split_lines"]
