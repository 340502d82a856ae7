"""Learner progress, attempt ledger and grade reports."""
