"""Business logic for reservations, capacity, tables, waitlist and tenants"""
