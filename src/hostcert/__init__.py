"""Tenant hostname TLS provisioning with a locally cached certificate status."""
