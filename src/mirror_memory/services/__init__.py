"""Services package for the MIRROR memory core.

This package provides all core services using the plugin dependency injection pattern from scitrera-app-framework.

Prefer importing from specific service submodules (e.g., `from .retrieval import get_retrieval_engine`)
rather than from this top-level package.
"""
