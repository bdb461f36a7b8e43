"""
recovery-readiness-sim: integration test package

File: tests/integration/__init__.py
Last updated: 2026-10-19

Purpose
- Test package marker for end-to-end runs across the planning, analytics and control planes.

Functional requirements
- Must not read the process environment or the working directory's config file.
"""
