"""
Transport package: awaitable, classified HTTP access to platform REST APIs.
"""

from .http import HttpResult, count_items, get, get_json, paginate_envelope, paginate_pages

__all__ = ["HttpResult", "count_items", "get", "get_json", "paginate_pages", "paginate_envelope"]
