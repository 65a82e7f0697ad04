"""Game domain services: lifecycle, turn rotation, answer consensus and views.

This package contains the game rules imported by HTTP routes, keeping
transport concerns separated from core game mechanics. Every mutating
operation commits exactly once and then pings the notification sink.
"""
