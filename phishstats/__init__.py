"""Phish tour statistics: setlist/duration reconciliation and tour stats."""
