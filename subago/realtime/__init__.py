"""Realtime package - live auction fan-out over WebSockets.

Files:
  broadcaster.py  - room keys and the broadcaster protocol services depend on
  rate_limit.py   - token buckets for PLACE_BID
  gateway.py      - in-memory connection/room manager (the `gateway` singleton)
"""
