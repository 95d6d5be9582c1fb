"""AWS-facing collaborators of the environment workflow."""
