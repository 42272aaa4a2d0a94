"""Recurrence expansion, conflict detection and calendar models."""
