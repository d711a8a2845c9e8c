"""Pydantic schemas package.

Folder intent:
  common.py      - CamelModel / StrictModel bases, HealthResponse, RpcEnvelope
  validators.py  - Phone, RUT, name, password validators + Spanish messages
  tenant.py      - Tenant and Company
  user.py        - User, auth tokens, multi-step sign-up
  item.py        - Items and Observations
  auction.py     - Auctions, auction items, registrations, bids
  feedback.py    - User feedback
  realtime.py    - WebSocket event names and payloads
"""
