"""
Webhook relay forwarding worker
Drains a Redis stream of received webhooks and delivers them to local destinations
"""

__version__ = "1.0.0"
