"""Clients for external services"""
