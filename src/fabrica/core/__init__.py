"""Core membership, authorization and onboarding logic."""
