"""
groupme_sync - Google Sheets to GroupMe membership sync

Periodically reconciles a roster of contacts kept in a Google Sheet against
the membership of a GroupMe group, adding missing members without sending
duplicate invitations.
"""

__version__ = "0.1.0"
