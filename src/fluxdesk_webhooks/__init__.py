"""Outbound webhook delivery service for FluxDesk tenants."""
