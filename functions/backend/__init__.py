"""
Backend package for the site content API.

This package provides the document store gateway, the page and project
services built on it, and a FastAPI application exposing them.
"""
