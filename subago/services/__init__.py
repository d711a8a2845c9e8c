"""Services package: all business logic lives here, never in routers.

Files:
  auth.py         - sign-in, refresh-token rotation, logout
  tenant.py       - tenants and companies
  user.py         - accounts, profiles, company-domain lookup
  onboarding.py   - tenant + company + user in one unit of work
  item.py         - vehicle inventory
  auction.py      - auction lifecycle and registrations
  bid_rules.py    - minimum-bid arithmetic (pure)
  bidding.py      - place_bid: locking, idempotency, soft-close
  settlement.py   - award items to the highest bidders
  scheduler.py    - background start/complete of auctions
  observation.py  - inventory notes
  feedback.py     - feedback inbox

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
