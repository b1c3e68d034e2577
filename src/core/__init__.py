"""
Core business logic for the video catalog.

This module is framework-agnostic - it doesn't import FastAPI, MongoDB,
or any infrastructure concerns. This separation means we can test the
upload and feed logic in isolation and swap frameworks if needed.
"""
