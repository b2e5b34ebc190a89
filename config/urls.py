"""
URL configuration for xrmsim.

The security core exposes no HTTP routes of its own; views that serve records
attach ``apps.security.permissions.RecordAccessPermission``.
"""

urlpatterns = []
