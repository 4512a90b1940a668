"""
Integration tests for cypress-pilot.

These tests drive the complete headless pipeline using:
- Mock Cypress CLI for deterministic runner output per engine
- Temporary Cypress projects created per test

Test modules:
- test_execute.py: Fallback sequencing, reporting, truncation, timeout and cancel
"""
