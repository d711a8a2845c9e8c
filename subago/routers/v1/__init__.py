"""v1 router package: all /api/v1/* endpoints live here.

Files:
  auth.py          - login / refresh / logout / me
  tenants.py       - tenant registry (ADMIN)
  companies.py     - companies and their branding
  users.py         - accounts and profiles
  items.py         - vehicle inventory
  auctions.py      - auction lifecycle and participants
  bids.py          - REST bidding and bid history
  observations.py  - inventory notes
  feedback.py      - user feedback inbox

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to subago/services/.
"""
