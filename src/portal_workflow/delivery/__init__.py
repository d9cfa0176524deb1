"""Outbound collaborators: mail and in-app notifications."""
