"""
Bus Crowd Monitor
Backend Application Package

Crowd-density analytics and prediction backend for the bus transit
monitoring dashboard. Contains the density classifier, reading store,
historical pattern table, prediction generator, analytics and the
background sampler, plus the APIs exposing them.
"""

__version__ = "1.0.0"
