"""Resumable harvest -> extract -> classify pipeline for referral outreach."""

__version__ = "0.1.0"
