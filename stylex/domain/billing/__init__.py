"""
Billing Domain - Subscription & Entitlement Engine

Usage-based tier pricing, the active/grace/blocked entitlement state, the
enforcement gate used by tenant writes, and the three payment rails
(PayPal orders, PayPal subscriptions, manual bank transfers).

Routers live in `router.py` and are mounted by `stylex.main`.
"""
