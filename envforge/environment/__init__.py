"""Environment initialization workflow.

This module contains the resolvers turning user input into credentials
and network settings, and the orchestrator provisioning a new environment.
"""
