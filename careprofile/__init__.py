"""Conversational caregiver onboarding API."""
