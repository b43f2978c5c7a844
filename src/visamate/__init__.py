"""
VisaMate - visa application tracker backend.

Hosts the onboarding tour and access gate (see the `onboarding` package) on top
of Supabase auth/profile tables, plus thin LLM document generation.
"""

__version__ = "1.0.0"
