"""Durable records of applications and environments."""
