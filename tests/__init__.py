"""
Asset registry test suite.

This package contains:
- unit/: Unit tests (codec, selectors, iterators, world state backends)
- integration/: Service and contract tests over a full world state
"""
