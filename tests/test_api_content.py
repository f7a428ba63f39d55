from conftest import auth_headers

ARTICLE = (
    "Green roofs keep buildings cooler in summer, retain storm water and "
    "give birds and insects a place to live in dense city blocks."
)
COURSE_DESCRIPTION = (
    "A practical introduction to reading construction drawings, "
    "estimating materials and planning a small renovation project."
)


def _create_post(client, admin, **overrides):
    payload = {
        "title": "Green Roofs: A Practical Guide",
        "content": ARTICLE,
        "category": "sustainability",
        "tags": [" Roofs ", "GREEN"],
        "is_published": True,
    }
    payload.update(overrides)
    response = client.post("/api/blogs", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201, response.text
    return response.json()


def _create_course(client, admin, **overrides):
    payload = {
        "title": "Renovation Basics",
        "description": COURSE_DESCRIPTION,
        "level": "beginner",
        "duration": 6,
        "instructor_name": "Bob Builder",
        "is_published": True,
    }
    payload.update(overrides)
    response = client.post("/api/courses", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201, response.text
    return response.json()


def test_blog_post_derived_fields(client, admin) -> None:
    post = _create_post(client, admin)

    assert post["slug"] == "green-roofs-a-practical-guide"
    assert post["excerpt"] == ARTICLE
    assert post["read_time"] == 1
    assert post["published_at"] is not None
    assert post["tags"] == ["roofs", "green"]
    assert post["author"]["name"] == "Alice Admin"
    assert post["average_rating"] == 0

    second = _create_post(client, admin)
    assert second["slug"] == "green-roofs-a-practical-guide-2"


def test_blog_post_update_recomputes_slug_and_excerpt(client, admin) -> None:
    post = _create_post(client, admin, is_published=False, excerpt="Hand written summary")
    assert post["excerpt"] == "Hand written summary"
    assert post["published_at"] is None

    new_content = "Timber frames " * 10 + "are back in fashion for small homes."
    response = client.put(
        f"/api/blogs/{post['id']}",
        json={"title": "Timber Frames", "content": new_content, "is_published": True},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["slug"] == "timber-frames"
    assert body["excerpt"].startswith("Timber frames Timber frames")
    assert body["published_at"] is not None

    null_title = client.put(f"/api/blogs/{post['id']}", json={"title": None}, headers=auth_headers(admin))
    assert null_title.status_code == 422


def test_drafts_are_hidden_from_public(client, admin, owner) -> None:
    published = _create_post(client, admin)
    draft = _create_post(client, admin, title="Draft", is_published=False)

    listing = client.get("/api/blogs").json()
    assert [item["id"] for item in listing["data"]] == [published["id"]]
    assert listing["total"] == 1
    assert listing["pages"] == 1
    assert client.get(f"/api/blogs/{draft['id']}").status_code == 404

    everything = client.get("/api/blogs/admin/all", headers=auth_headers(admin)).json()
    assert everything["total"] == 2
    assert client.get("/api/blogs/admin/all", headers=auth_headers(owner)).status_code == 403


def test_blog_views_search_and_slug_lookup(client, admin) -> None:
    post = _create_post(client, admin)

    client.get(f"/api/blogs/{post['id']}")
    viewed = client.get(f"/api/blogs/slug/{post['slug']}").json()
    assert viewed["views"] == 2

    assert [item["id"] for item in client.get("/api/blogs/search", params={"q": "STORM"}).json()] == [post["id"]]
    assert client.get("/api/blogs/search").status_code == 400
    assert [item["id"] for item in client.get("/api/blogs/popular").json()] == [post["id"]]


def test_blog_feedback_updates_average_rating(client, admin, owner) -> None:
    post_id = _create_post(client, admin)["id"]

    first = client.post(f"/api/blogs/{post_id}/feedback", json={"rating": 5, "comment": "Very useful"})
    second = client.post(f"/api/blogs/{post_id}/feedback", json={"rating": 2, "comment": "Too short"})
    assert first.status_code == 201
    assert second.status_code == 201

    feedback = client.get(f"/api/blogs/{post_id}/feedback").json()
    assert feedback["count"] == 2
    assert feedback["average_rating"] == 3.5
    assert client.get(f"/api/blogs/{post_id}").json()["average_rating"] == 3.5

    forbidden = client.delete(f"/api/blogs/{post_id}/feedback/{second.json()['id']}", headers=auth_headers(owner))
    assert forbidden.status_code == 403

    deleted = client.delete(f"/api/blogs/{post_id}/feedback/{second.json()['id']}", headers=auth_headers(admin))
    assert deleted.status_code == 200
    assert deleted.json()["average_rating"] == 5.0
    assert client.get(f"/api/blogs/{post_id}/feedback").json()["average_rating"] == 5.0

    missing = client.delete(f"/api/blogs/{post_id}/feedback/{second.json()['id']}", headers=auth_headers(admin))
    assert missing.status_code == 404


def test_feedback_validation(client, admin) -> None:
    post_id = _create_post(client, admin)["id"]

    assert client.post(f"/api/blogs/{post_id}/feedback", json={"rating": 0, "comment": "Bad"}).status_code == 422
    assert client.post(f"/api/blogs/{post_id}/feedback", json={"rating": 3, "comment": "  "}).status_code == 422
    assert client.post(
        "/api/blogs/00000000-0000-0000-0000-000000000000/feedback",
        json={"rating": 3, "comment": "Fine"},
    ).status_code == 404


def test_delete_blog_post_removes_feedback(client, admin) -> None:
    post_id = _create_post(client, admin)["id"]
    client.post(f"/api/blogs/{post_id}/feedback", json={"rating": 4, "comment": "Nice"})

    response = client.delete(f"/api/blogs/{post_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert client.get(f"/api/blogs/{post_id}/feedback").status_code == 404


def test_course_lifecycle_with_feedback(client, admin) -> None:
    course = _create_course(client, admin)
    assert course["slug"] == "renovation-basics"
    assert course["short_description"] == COURSE_DESCRIPTION

    client.post(f"/api/courses/{course['id']}/feedback", json={"rating": 4, "comment": "Clear"})
    client.post(f"/api/courses/{course['id']}/feedback", json={"rating": 5, "comment": "Great"})
    client.post(f"/api/courses/{course['id']}/feedback", json={"rating": 5, "comment": "Loved it"})
    assert client.get(f"/api/courses/{course['id']}").json()["average_rating"] == 4.7

    updated = client.put(
        f"/api/courses/{course['id']}",
        json={"title": "Renovation Basics II", "level": "intermediate"},
        headers=auth_headers(admin),
    )
    assert updated.status_code == 200
    assert updated.json()["slug"] == "renovation-basics-ii"
    assert updated.json()["average_rating"] == 4.7

    assert [item["id"] for item in client.get("/api/courses/search", params={"q": "drawings"}).json()] == [course["id"]]
    listing = client.get("/api/courses").json()
    assert listing["total"] == 1

    assert client.delete(f"/api/courses/{course['id']}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/api/courses/{course['id']}").status_code == 404


def test_course_validation_and_admin_only(client, admin, owner) -> None:
    too_short = client.post(
        "/api/courses",
        json={
            "title": "Short",
            "description": "Too short",
            "level": "beginner",
            "duration": 1,
            "instructor_name": "Bob",
        },
        headers=auth_headers(admin),
    )
    assert too_short.status_code == 422

    course_id = _create_course(client, admin)["id"]
    assert client.put(f"/api/courses/{course_id}", json={"duration": 0}, headers=auth_headers(admin)).status_code == 422
    assert client.put(f"/api/courses/{course_id}", json={"level": None}, headers=auth_headers(admin)).status_code == 422
    assert client.delete(f"/api/courses/{course_id}", headers=auth_headers(owner)).status_code == 403
