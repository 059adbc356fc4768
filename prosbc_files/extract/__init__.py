"""
prosbc_files.extract
====================
Sub-package for pulling structured data out of appliance HTML.

Public API
----------
    from prosbc_files.extract import extract_token, parse_file_table
"""

from .fragments import extract_error_fragments, extract_form_content
from .html import parse_html
from .listing import parse_file_table
from .token import extract_record_id, extract_token

__all__ = [
    "extract_token",
    "extract_record_id",
    "parse_file_table",
    "extract_error_fragments",
    "extract_form_content",
    "parse_html",
]
