"""
Notification producers. Ticket creation enqueues an email task for the
ticket owner; delivery itself is handled by a separate worker.
"""
