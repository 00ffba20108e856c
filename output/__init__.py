"""
Output module - Fabric output formatters

Contains formatters for different output formats:
- JSON
- Text (human-readable fabric dump)
- Traced path summaries
"""

from .formatters import to_json, to_text, format_path, format_issues

__all__ = ['to_json', 'to_text', 'format_path', 'format_issues']
