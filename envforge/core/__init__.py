"""Core components for envforge.

This module contains the foundational components including AWS session
and client management, configuration handling, input validation,
interactive prompting and progress reporting.
"""
