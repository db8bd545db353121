"""Stylex barbershop booking API."""
