"""HTTP API for tenant membership and onboarding."""
