"""End-to-end tests for the v1 REST routers."""

from datetime import timedelta

from subago.domain.enums import AuctionState, ItemState, UserRole
from subago.utils.time import utc_now

API = "/api/v1"


def _item_payload(plate="ZX1234", **overrides):
    payload = {
        "plate": plate,
        "brand": "Nissan",
        "model": "Versa",
        "year": 2019,
        "legalStatus": "Transferible",
        "basePrice": 2_500_000,
    }
    payload.update(overrides)
    return payload


class TestHealth:
    async def test_health(self, client):
        res = await client.get("/health")
        assert res.status_code == 200
        assert res.json()["status"] == "ok"


class TestItems:
    async def test_create_and_fetch(self, client, world, headers):
        h = headers(world.manager)

        res = await client.post(f"{API}/items", json=_item_payload(plate="zx1234"), headers=h)
        assert res.status_code == 201
        item = res.json()["data"]
        assert item["plate"] == "ZX1234"
        assert item["state"] == "Disponible"
        assert item["tenantId"] == world.tenant.id

        res = await client.get(f"{API}/items/{item['id']}", headers=h)
        assert res.json()["data"]["brand"] == "Nissan"

    async def test_duplicate_plate(self, client, world, headers):
        h = headers(world.manager)
        await client.post(f"{API}/items", json=_item_payload(), headers=h)

        res = await client.post(f"{API}/items", json=_item_payload(), headers=h)

        assert res.status_code == 409

    async def test_invalid_plate(self, client, world, headers):
        res = await client.post(f"{API}/items", json=_item_payload(plate="ABC"), headers=headers(world.manager))

        assert res.status_code == 422
        assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_bidders_cannot_manage_inventory(self, client, world, headers):
        res = await client.get(f"{API}/items", headers=headers(world.bidder))
        assert res.status_code == 403

    async def test_other_tenants_items_are_invisible(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        other = await factory.tenant()
        outsider = await factory.user(other, role=UserRole.AUCTION_MANAGER)

        res = await client.get(f"{API}/items/{item.id}", headers=headers(outsider))
        assert res.status_code == 404

        listing = await client.get(f"{API}/items", headers=headers(outsider))
        assert listing.json()["meta"]["total"] == 0

    async def test_list_filters_and_paginates(self, client, factory, world, headers):
        for _ in range(3):
            await factory.item(world.tenant)
        await factory.item(world.tenant, state=ItemState.VENDIDO)

        res = await client.get(f"{API}/items?state=Disponible&limit=2", headers=headers(world.manager))

        body = res.json()
        assert len(body["data"]) == 2
        assert body["meta"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}

    async def test_stats(self, client, factory, world, headers):
        await factory.item(world.tenant)
        await factory.item(world.tenant, state=ItemState.VENDIDO)

        res = await client.get(f"{API}/items/stats", headers=headers(world.manager))

        data = res.json()["data"]
        assert data["total"] == 2
        assert data["disponible"] == 1
        assert data["vendido"] == 1

    async def test_edit_drops_unusable_numbers(self, client, factory, world, headers):
        item = await factory.item(world.tenant)

        res = await client.put(
            f"{API}/items/{item.id}",
            json={"kilometraje": "-3", "basePrice": "", "description": "Como nuevo"},
            headers=headers(world.manager),
        )

        data = res.json()["data"]
        assert data["description"] == "Como nuevo"
        assert data["basePrice"] == 1_000_000
        assert data["kilometraje"] is None

    async def test_cannot_delete_item_in_active_auction(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        await factory.auction(world.tenant, (item,))

        res = await client.delete(f"{API}/items/{item.id}", headers=headers(world.manager))

        assert res.status_code == 400

    async def test_delete(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        h = headers(world.manager)

        assert (await client.delete(f"{API}/items/{item.id}", headers=h)).status_code == 204
        assert (await client.get(f"{API}/items/{item.id}", headers=h)).status_code == 404


class TestUsers:
    def _payload(self, email, **overrides):
        payload = {
            "name": "Cajero Nuevo",
            "email": email,
            "password": "Secreta#123",
            "confirmPassword": "Secreta#123",
            "role": "USER",
        }
        payload.update(overrides)
        return payload

    async def test_managers_create_accounts_in_their_own_tenant(self, client, factory, world, headers):
        other = await factory.tenant()
        body = self._payload("cajero@example.com", tenantId=other.id)

        res = await client.post(f"{API}/users", json=body, headers=headers(world.manager))

        assert res.status_code == 201
        assert res.json()["data"]["tenantId"] == world.tenant.id
        assert res.json()["data"]["companyId"] == world.company.id

    async def test_admin_picks_the_tenant(self, client, factory, world, headers):
        admin = await factory.user(role=UserRole.ADMIN)
        body = self._payload("gestor@example.com", role="AUCTION_MANAGER", companyId=world.company.id)

        res = await client.post(f"{API}/users", json=body, headers=headers(admin))

        assert res.status_code == 201
        assert res.json()["data"]["tenantId"] == world.tenant.id


class TestAuctions:
    async def test_create_links_items(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        start = utc_now() + timedelta(hours=1)
        payload = {
            "title": "Remate de otoño",
            "startTime": start.isoformat(),
            "endTime": (start + timedelta(hours=2)).isoformat(),
            "itemIds": [item.id],
        }

        res = await client.post(f"{API}/auctions", json=payload, headers=headers(world.manager))

        assert res.status_code == 201
        auction = res.json()["data"]
        assert auction["state"] == "inactive"
        assert [ai["itemId"] for ai in auction["items"]] == [item.id]

        res = await client.get(f"{API}/items/{item.id}", headers=headers(world.manager))
        assert res.json()["data"]["state"] == "En subasta"

    async def test_past_start_is_rejected(self, client, world, headers):
        start = utc_now() - timedelta(minutes=5)
        payload = {
            "title": "Remate tardío",
            "startTime": start.isoformat(),
            "endTime": (start + timedelta(hours=2)).isoformat(),
        }

        res = await client.post(f"{API}/auctions", json=payload, headers=headers(world.manager))

        assert res.status_code == 400

    async def test_bidders_cannot_create(self, client, world, headers):
        start = utc_now() + timedelta(hours=1)
        payload = {"title": "Remate", "startTime": start.isoformat(), "endTime": (start + timedelta(hours=1)).isoformat()}

        res = await client.post(f"{API}/auctions", json=payload, headers=headers(world.bidder))

        assert res.status_code == 403

    async def test_list_filter_by_status(self, client, factory, world, headers):
        await factory.auction(world.tenant)
        await factory.auction(world.tenant, state=AuctionState.INACTIVE, starts_in=timedelta(hours=1))

        res = await client.get(f"{API}/auctions?status=inactive", headers=headers(world.bidder))

        data = res.json()["data"]
        assert [a["state"] for a in data] == ["inactive"]

    async def test_self_registration(self, client, factory, world, headers):
        auction, _ = await factory.auction(world.tenant)
        h = headers(world.bidder)

        res = await client.post(f"{API}/auctions/{auction.id}/register", headers=h)
        assert res.status_code == 201

        mine = await client.get(f"{API}/auctions/my-registrations", headers=h)
        assert [r["auctionId"] for r in mine.json()["data"]] == [auction.id]

        participants = await client.get(
            f"{API}/auctions/{auction.id}/participants", headers=headers(world.manager)
        )
        assert [p["userId"] for p in participants.json()["data"]] == [world.bidder.id]

    async def test_close_settles(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        auction, (auction_item,) = await factory.auction(world.tenant, (item,))
        await factory.register(world.bidder, auction)
        bid = await client.post(
            f"{API}/bids",
            json={"auctionItemId": auction_item.id, "offeredPrice": 1_000_000},
            headers=headers(world.bidder),
        )
        assert bid.status_code == 201

        res = await client.post(f"{API}/auctions/{auction.id}/close", headers=headers(world.manager))

        assert res.status_code == 200
        assert res.json()["data"]["state"] == "completed"
        sold = await client.get(f"{API}/items/sold-to/{world.bidder.id}", headers=headers(world.manager))
        assert [i["id"] for i in sold.json()["data"]] == [item.id]

    async def test_connected_users_is_empty_without_sockets(self, client, factory, world, headers):
        auction, _ = await factory.auction(world.tenant)

        res = await client.get(f"{API}/auctions/{auction.id}/connected-users", headers=headers(world.manager))

        assert res.json()["data"] == {"auctionId": auction.id, "userIds": [], "count": 0}


class TestBids:
    async def _setup(self, factory, world):
        item = await factory.item(world.tenant)
        auction, (auction_item,) = await factory.auction(world.tenant, (item,))
        rival = await factory.user(world.tenant, world.company, name="Rival Secreto", public_name="Halcón")
        await factory.register(world.bidder, auction)
        await factory.register(rival, auction)
        return auction, auction_item, rival

    async def test_place_and_replay(self, client, factory, world, headers):
        _, auction_item, _ = await self._setup(factory, world)
        payload = {
            "auctionItemId": auction_item.id,
            "offeredPrice": 1_000_000,
            "requestId": "6f1c1a52-63a4-4f8e-9a35-2d1d7a1b0c11",
        }
        h = headers(world.bidder)

        first = await client.post(f"{API}/bids", json=payload, headers=h)
        again = await client.post(f"{API}/bids", json=payload, headers=h)

        assert first.json()["data"]["createdNow"] is True
        assert again.json()["data"]["createdNow"] is False
        assert again.json()["data"]["bid"]["id"] == first.json()["data"]["bid"]["id"]

    async def test_below_minimum(self, client, factory, world, headers):
        _, auction_item, _ = await self._setup(factory, world)

        res = await client.post(
            f"{API}/bids",
            json={"auctionItemId": auction_item.id, "offeredPrice": 999_999},
            headers=headers(world.bidder),
        )

        assert res.status_code == 400

    async def test_managers_cannot_bid(self, client, factory, world, headers):
        _, auction_item, _ = await self._setup(factory, world)

        res = await client.post(
            f"{API}/bids",
            json={"auctionItemId": auction_item.id, "offeredPrice": 1_000_000},
            headers=headers(world.manager),
        )

        assert res.status_code == 403

    async def test_history_masks_other_bidders(self, client, factory, world, headers):
        auction, auction_item, rival = await self._setup(factory, world)
        await client.post(
            f"{API}/bids",
            json={"auctionItemId": auction_item.id, "offeredPrice": 1_000_000},
            headers=headers(rival),
        )
        await client.post(
            f"{API}/bids",
            json={"auctionItemId": auction_item.id, "offeredPrice": 1_050_000},
            headers=headers(world.bidder),
        )

        as_bidder = (await client.get(f"{API}/bids/auction/{auction.id}", headers=headers(world.bidder))).json()
        by_user = {b["userId"]: b["user"] for b in as_bidder["data"]}
        assert by_user[rival.id]["name"] == "Halcón"
        assert by_user[rival.id]["email"] == ""
        assert by_user[world.bidder.id]["email"] == world.bidder.email

        as_manager = (await client.get(f"{API}/bids/auction/{auction.id}", headers=headers(world.manager))).json()
        by_user = {b["userId"]: b["user"] for b in as_manager["data"]}
        assert by_user[rival.id]["name"] == "Rival Secreto"

    async def test_item_history_is_paged(self, client, factory, world, headers):
        _, auction_item, _ = await self._setup(factory, world)
        for amount in (1_000_000, 1_050_000, 1_100_000):
            await client.post(
                f"{API}/bids",
                json={"auctionItemId": auction_item.id, "offeredPrice": amount},
                headers=headers(world.bidder),
            )

        res = await client.get(
            f"{API}/bids/item/{auction_item.id}/paged?limit=2", headers=headers(world.manager)
        )

        body = res.json()
        assert body["meta"]["total"] == 3
        assert [b["offeredPrice"] for b in body["data"]] == [1_100_000, 1_050_000]

        mine = await client.get(f"{API}/bids/my-bids", headers=headers(world.bidder))
        assert len(mine.json()["data"]) == 3


class TestObservations:
    async def test_crud(self, client, factory, world, headers):
        item = await factory.item(world.tenant)
        h = headers(world.manager)

        res = await client.post(
            f"{API}/observations",
            json={"title": "Rayón lateral", "description": "Puerta trasera izquierda", "itemId": item.id},
            headers=h,
        )
        assert res.status_code == 201
        obs_id = res.json()["data"]["id"]

        listing = await client.get(f"{API}/observations?itemId={item.id}", headers=h)
        assert [o["id"] for o in listing.json()["data"]] == [obs_id]

        updated = await client.put(f"{API}/observations/{obs_id}", json={"description": "Reparado"}, headers=h)
        assert updated.json()["data"]["description"] == "Reparado"

        assert (await client.delete(f"{API}/observations/{obs_id}", headers=h)).status_code == 204
        assert (await client.get(f"{API}/observations/{obs_id}", headers=h)).status_code == 404

    async def test_unknown_item(self, client, world, headers):
        res = await client.post(
            f"{API}/observations",
            json={"title": "Rayón", "description": "x", "itemId": "no-existe"},
            headers=headers(world.manager),
        )
        assert res.status_code == 404


class TestFeedback:
    async def test_users_file_and_managers_triage(self, client, factory, world, headers):
        other = await factory.user(world.tenant, world.company)
        payload = {"category": "Consejos", "title": "Más fotos", "message": "Agreguen fotos del motor"}

        res = await client.post(f"{API}/feedback", json=payload, headers=headers(world.bidder))
        assert res.status_code == 201
        entry = res.json()["data"]
        assert entry["status"] == "PENDING"
        assert entry["userId"] == world.bidder.id
        await client.post(f"{API}/feedback", json=payload, headers=headers(other))

        own = await client.get(f"{API}/feedback", headers=headers(world.bidder))
        assert [f["id"] for f in own.json()["data"]] == [entry["id"]]
        everything = await client.get(f"{API}/feedback", headers=headers(world.manager))
        assert everything.json()["meta"]["total"] == 2

        res = await client.patch(
            f"{API}/feedback/{entry['id']}", json={"status": "RESOLVED"}, headers=headers(world.manager)
        )
        assert res.json()["data"]["status"] == "RESOLVED"

        resolved = await client.get(f"{API}/feedback?status=RESOLVED", headers=headers(world.manager))
        assert resolved.json()["meta"]["total"] == 1

    async def test_unknown_category(self, client, world, headers):
        payload = {"category": "Spam", "title": "x", "message": "y"}
        res = await client.post(f"{API}/feedback", json=payload, headers=headers(world.bidder))
        assert res.status_code == 422

    async def test_users_cannot_triage(self, client, world, headers):
        res = await client.patch(
            f"{API}/feedback/whatever", json={"status": "RESOLVED"}, headers=headers(world.bidder)
        )
        assert res.status_code == 403
