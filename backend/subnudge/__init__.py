"""Subnudge - subscription renewal reminders."""
