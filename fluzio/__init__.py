"""
Backend package for the Fluzio rewards platform.

This package provides the FastAPI application, the domain services for
missions, check-ins, rewards, referrals and creator bookings, and the
document store, queue and storage abstractions they run on. The same
services back the Firebase Cloud Functions in main.py.
"""
