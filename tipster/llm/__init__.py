"""Completion client, pricing, usage ledger and prediction generation."""
