# postflow - Application Services
# Orchestrate repositories and lifecycle hooks for the admin surface
