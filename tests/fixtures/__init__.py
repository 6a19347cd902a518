"""Shared test fixtures package.

Provides reusable fixtures and helpers for all test suites: an in-memory
store for service and API tests, and moto-backed tables and buckets for
the store client tests.
"""
