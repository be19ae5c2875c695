"""
Competitive analysis services for Nexus.

This package holds the competitor list policy, the prompt template and
the dispatcher that runs one analysis against the active LLM backend and
persists the resulting report.
"""
