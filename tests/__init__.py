"""Test package for the S2 Cognition Diagnostic.

Core tests drive the subtests with an injected fake clock; UI smoke tests
run headlessly using pygame's dummy video driver. To run these tests,
execute ``pytest`` from the project root.
"""
