import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

from starlette.datastructures import UploadFile

from conftest import auth_headers, make_token
from hardware_catalog.service.validation import MAX_IMAGE_SIZE

ADMIN = auth_headers(
    "can_create_category",
    "can_update_category",
    "can_delete_category",
    "can_create_product",
    "can_update_product",
    "can_delete_product",
    "can_manage_product_images",
    "can_view_dashboard",
)


async def _create_category(client, name="Power Tools") -> dict:
    resp = await client.post("/categories/", json={"name": name}, headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_product(client, category_id, name="Cordless Drill", price="24999.50", images=None) -> dict:
    body = {"name": name, "category_id": category_id, "price": price, "images": images or []}
    resp = await client.post("/products/", json=body, headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_health_and_metrics(client):
    assert (await client.get("/health")).json() == {"status": "ok"}
    await client.get("/categories/")

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert 'path="/categories/"' in resp.text
    assert 'path="/health"' not in resp.text


async def test_categories_are_public(client):
    resp = await client.get("/categories/")
    assert resp.status_code == 200
    assert resp.json() == []


async def test_mutation_requires_token(client):
    resp = await client.post("/categories/", json={"name": "Paint"})
    assert resp.status_code in (401, 403)


async def test_mutation_requires_permission(client):
    resp = await client.post(
        "/categories/", json={"name": "Paint"}, headers=auth_headers("can_view_dashboard")
    )
    assert resp.status_code == 403


async def test_expired_token(client):
    token = make_token("can_create_category", expires_in=timedelta(minutes=-1))
    resp = await client.post("/categories/", json={"name": "Paint"}, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


async def test_category_lifecycle(client):
    created = await _create_category(client, "  Paint ")
    assert created["name"] == "Paint"

    resp = await client.post("/categories/", json={"name": "Paint"}, headers=ADMIN)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "A category with this name already exists"

    resp = await client.put(f"/categories/{created['id']}", json={"name": "Paints"}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Paints"

    resp = await client.delete(f"/categories/{created['id']}", headers=ADMIN)
    assert resp.status_code == 200
    assert (await client.get("/categories/")).json() == []


async def test_category_name_validation(client):
    resp = await client.post("/categories/", json={"name": "P"}, headers=ADMIN)
    assert resp.status_code == 422
    assert resp.json()["errors"] == {"name": "Category name must be at least 2 characters"}


async def test_update_missing_category(client):
    resp = await client.put(f"/categories/{uuid.uuid4()}", json={"name": "Paints"}, headers=ADMIN)
    assert resp.status_code == 404


async def test_category_in_use_cannot_be_deleted(client):
    category = await _create_category(client)
    await _create_product(client, category["id"])

    resp = await client.delete(f"/categories/{category['id']}", headers=ADMIN)

    assert resp.status_code == 409
    assert resp.json()["product_count"] == 1
    assert len((await client.get("/categories/")).json()) == 1


async def test_product_crud(client):
    category = await _create_category(client)
    product = await _create_product(client, category["id"], name=" Impact Driver ")
    assert product["name"] == "Impact Driver"
    assert product["price"] == 24999.5
    assert product["category"] == {"id": category["id"], "name": "Power Tools"}

    resp = await client.get(f"/products/{product['id']}")
    assert resp.status_code == 200

    body = {"name": "Impact Driver XR", "category_id": category["id"], "price": 26000, "images": []}
    resp = await client.put(f"/products/{product['id']}", json=body, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Impact Driver XR"
    assert resp.json()["updated_at"] >= product["updated_at"]


async def test_product_validation_errors(client):
    body = {"name": "", "category_id": str(uuid.uuid4()), "price": "1000001"}

    resp = await client.post("/products/", json=body, headers=ADMIN)

    assert resp.status_code == 422
    assert resp.json()["errors"] == {
        "name": "Product name is required",
        "category_id": "Selected category does not exist",
        "price": "Price must not exceed 1,000,000",
    }


async def test_product_list_filters(client):
    tools = await _create_category(client)
    fasteners = await _create_category(client, "Fasteners")
    await _create_product(client, tools["id"], name="Drill Press", price="90000")
    await _create_product(client, tools["id"], name="Band Saw", price="120000")
    await _create_product(client, fasteners["id"], name="Drywall Screws", price="900")

    resp = await client.get("/products/", params={"search": "dr"})
    assert [p["name"] for p in resp.json()] == ["Drill Press", "Drywall Screws"]

    resp = await client.get("/products/", params={"category_id": tools["id"], "sort_field": "price", "sort_direction": "desc"})
    assert [p["name"] for p in resp.json()] == ["Band Saw", "Drill Press"]

    resp = await client.get("/products/", params={"sort_field": "colour"})
    assert resp.status_code == 422


async def test_missing_product(client):
    resp = await client.get(f"/products/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


async def test_image_upload_and_product_delete(client, storage_api):
    category = await _create_category(client)
    files = [
        ("files", ("front.png", b"\x89PNG-front", "image/png")),
        ("files", ("manual.pdf", b"%PDF", "application/pdf")),
    ]

    resp = await client.post("/products/images", files=files, headers=ADMIN)

    assert resp.status_code == 200, resp.text
    batch = resp.json()
    assert [r["ok"] for r in batch["results"]] == [True, False]
    assert len(batch["images"]) == 1
    assert len(storage_api.blobs) == 1

    product = await _create_product(client, category["id"], images=batch["images"])

    resp = await client.delete(f"/products/{product['id']}", headers=ADMIN)
    assert resp.status_code == 200
    assert storage_api.blobs == {}
    assert (await client.get(f"/products/{product['id']}")).status_code == 404


async def test_image_upload_limit(client, storage_api):
    current = [f"http://storage.test/{i}.png" for i in range(10)]

    resp = await client.post(
        "/products/images",
        files=[("files", ("extra.png", b"\x89PNG", "image/png"))],
        data={"current_images": current},
        headers=ADMIN,
    )

    assert resp.status_code == 422
    assert resp.json()["current"] == 10
    assert storage_api.requests == []


async def test_image_upload_limit_checked_before_reading(client, storage_api, monkeypatch):
    read = AsyncMock(return_value=b"")
    monkeypatch.setattr(UploadFile, "read", read)
    files = [("files", (f"{i}.png", b"\x89PNG", "image/png")) for i in range(8)]
    current = [f"http://storage.test/{i}.png" for i in range(3)]

    resp = await client.post("/products/images", files=files, data={"current_images": current}, headers=ADMIN)

    assert resp.status_code == 422
    assert resp.json()["requested"] == 8
    read.assert_not_awaited()
    assert storage_api.requests == []


async def test_oversized_image_rejected_in_batch(client, storage_api):
    files = [
        ("files", ("huge.png", b"\x00" * (MAX_IMAGE_SIZE + 1024), "image/png")),
        ("files", ("small.png", b"\x89PNG", "image/png")),
    ]

    resp = await client.post("/products/images", files=files, headers=ADMIN)

    assert resp.status_code == 200, resp.text
    results = resp.json()["results"]
    assert [r["ok"] for r in results] == [False, True]
    assert results[0]["error"] == "File size too large. Please upload images smaller than 5MB."
    assert len(storage_api.blobs) == 1


async def test_remove_image(client, storage, storage_api):
    storage_api.blobs["1_a.png"] = b"img"
    url = storage.url_for("1_a.png")

    resp = await client.request(
        "DELETE",
        "/products/images",
        json={"image_url": url, "current_images": [url, "other"]},
        headers=ADMIN,
    )

    assert resp.status_code == 200
    assert resp.json() == {"images": ["other"]}
    assert storage_api.blobs == {}


async def test_product_delete_with_failing_image(client, storage, storage_api):
    category = await _create_category(client)
    storage_api.blobs["1_a.png"] = b"img"
    storage_api.failing.add("1_a.png")
    product = await _create_product(client, category["id"], images=[storage.url_for("1_a.png")])

    resp = await client.delete(f"/products/{product['id']}", headers=ADMIN)

    assert resp.status_code == 502
    assert resp.json()["failed_images"] == ["1_a.png"]
    assert (await client.get(f"/products/{product['id']}")).status_code == 200


async def test_dashboard(client):
    category = await _create_category(client)
    await _create_product(client, category["id"], price="100")
    await _create_product(client, category["id"], name="Hammer", price="300")

    resp = await client.get("/admin/dashboard", headers=ADMIN)

    assert resp.status_code == 200
    stats = resp.json()["stats"]
    assert stats["total_products"] == 2
    assert stats["average_price"] == 200.0
    assert stats["products_per_category"] == {category["id"]: 2}


async def test_dashboard_requires_permission(client):
    resp = await client.get("/admin/dashboard", headers=auth_headers("can_create_product"))
    assert resp.status_code == 403


async def test_request_id_is_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"
