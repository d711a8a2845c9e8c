"""Routers package: HTTP and WebSocket endpoint definitions.

Files:
  rpc.py  - RPC procedures for sign-up / sign-in (/api/rpc/{procedure})
  ws.py   - Live auction socket (/ws?token=...)
  v1/     - Versioned REST routes (/api/v1/*)
"""
