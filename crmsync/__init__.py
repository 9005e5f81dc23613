"""CRM synchronization engine for booking records."""
