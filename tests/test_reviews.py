from reviews import average_rating


def review_body(product_id, rating, **overrides):
    body = {
        "productId": product_id,
        "name": "Sana",
        "email": "Sana@Example.com",
        "rating": rating,
        "comment": "Lasts all day.",
    }
    body.update(overrides)
    return body


def product_state(client, product_id):
    data = client.get(f"/api/products/{product_id}").json()
    return data["rating"], data["reviewsCount"]


def test_average_rating():
    assert average_rating([]) == (0, 0)
    assert average_rating([4, 4, 5]) == (4.3, 3)
    assert average_rating([5]) == (5.0, 1)


def test_new_review_recomputes_mean(client, make_product):
    product = make_product()
    client.post("/api/reviews", json=review_body(product["id"], 4))
    client.post("/api/reviews", json=review_body(product["id"], 4))
    assert product_state(client, product["id"]) == (4.0, 2)

    res = client.post("/api/reviews", json=review_body(product["id"], 5))
    assert res.status_code == 201
    assert res.json()["email"] == "sana@example.com"
    assert product_state(client, product["id"]) == (round((4.0 * 2 + 5) / 3, 1), 3)


def test_review_update_and_delete_keep_aggregate(client, make_product, admin_headers):
    product = make_product()
    first = client.post("/api/reviews", json=review_body(product["id"], 2)).json()
    second = client.post("/api/reviews", json=review_body(product["id"], 4)).json()
    assert product_state(client, product["id"]) == (3.0, 2)

    res = client.put(f"/api/reviews/{first['id']}", json={"rating": 5}, headers=admin_headers)
    assert res.status_code == 200
    assert product_state(client, product["id"]) == (4.5, 2)

    assert client.delete(f"/api/reviews/{second['id']}", headers=admin_headers).status_code == 200
    assert product_state(client, product["id"]) == (5.0, 1)

    client.delete(f"/api/reviews/{first['id']}", headers=admin_headers)
    assert product_state(client, product["id"]) == (0, 0)


def test_reviews_only_count_their_own_product(client, make_product):
    oud = make_product()
    rose = make_product(name="Rose Attar")
    client.post("/api/reviews", json=review_body(oud["id"], 1))
    client.post("/api/reviews", json=review_body(rose["id"], 5))
    assert product_state(client, oud["id"]) == (1.0, 1)
    assert product_state(client, rose["id"]) == (5.0, 1)

    listed = client.get("/api/reviews", params={"productId": rose["id"]}).json()
    assert [r["rating"] for r in listed] == [5]


def test_review_validation(client, make_product, count):
    product = make_product()
    assert client.post("/api/reviews", json=review_body(product["id"], 6)).status_code == 400
    assert client.post("/api/reviews", json=review_body(product["id"], 0)).status_code == 400
    assert client.post("/api/reviews", json=review_body(product["id"], 3, email="nope")).status_code == 400
    assert client.post("/api/reviews", json=review_body("64b7f0c2a1b2c3d4e5f60718", 3)).status_code == 404
    assert count("review") == 0


def test_review_mutations_require_admin(client, make_product):
    product = make_product()
    review = client.post("/api/reviews", json=review_body(product["id"], 3)).json()
    assert client.put(f"/api/reviews/{review['id']}", json={"rating": 1}).status_code == 401
    assert client.delete(f"/api/reviews/{review['id']}").status_code == 401


def test_deleting_product_removes_its_reviews(client, make_product, admin_headers, count):
    product = make_product()
    client.post("/api/reviews", json=review_body(product["id"], 3))
    assert client.delete(f"/api/products/{product['id']}", headers=admin_headers).status_code == 200
    assert count("review") == 0


def test_review_product_id_is_stored_in_canonical_form(client, make_product, admin_headers, count):
    product = make_product()
    res = client.post("/api/reviews", json=review_body(product["id"].upper(), 4))
    assert res.status_code == 201
    assert res.json()["productId"] == product["id"]
    assert product_state(client, product["id"]) == (4.0, 1)

    client.delete(f"/api/products/{product['id']}", headers=admin_headers)
    assert count("review") == 0
