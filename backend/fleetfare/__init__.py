"""Fleet fare configuration and estimation service."""
