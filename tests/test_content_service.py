import asyncio

from construction_api.models import BlogPost
from construction_api.services.blog_service import BlogService
from construction_api.services.content import page_bounds, unique_slug
from construction_api.utils.text import make_excerpt, read_time_minutes, slugify

ARTICLE = "Concrete needs time to cure before the next floor goes on top of it. " * 3


def _post_data(**overrides) -> dict:
    data = {
        "title": "Curing Concrete",
        "content": ARTICLE,
        "category": "construction",
        "tags": [],
        "is_published": True,
    }
    data.update(overrides)
    return data


def test_slugify() -> None:
    assert slugify("Green Roofs: 2024 Guide") == "green-roofs-2024-guide"
    assert slugify("  Café & Bar  ") == "cafe-bar"
    assert slugify("!!!") == "item"


def test_excerpt_and_read_time() -> None:
    assert make_excerpt("short  text") == "short text"
    long_text = "word " * 100
    excerpt = make_excerpt(long_text)
    assert excerpt.endswith("...")
    assert len(excerpt) <= 153

    assert read_time_minutes("") == 0
    assert read_time_minutes("word " * 200) == 1
    assert read_time_minutes("word " * 201) == 2


def test_page_bounds() -> None:
    assert page_bounds(1, 10) == (0, 10)
    assert page_bounds(3, 5) == (10, 5)
    assert page_bounds(0, 0) == (0, 1)


def test_unique_slug_skips_taken_suffixes(session_factory, admin) -> None:
    async def _run():
        async with session_factory() as session:
            service = BlogService(session)
            first = await service.create(admin.id, _post_data())
            await service.create(admin.id, _post_data())
            third = await service.create(admin.id, _post_data())
            # Собственный slug записи не считается занятым
            same = await unique_slug(session, BlogPost, "Curing Concrete", current_id=first.id)
            return third.slug, same

    third_slug, same = asyncio.run(_run())

    assert third_slug == "curing-concrete-3"
    assert same == "curing-concrete"


def test_recompute_average_after_add_and_delete(session_factory, admin) -> None:
    async def _run():
        async with session_factory() as session:
            service = BlogService(session)
            post = await service.create(admin.id, _post_data())
            entries = [await service.feedback.add(post.id, rating, "ok") for rating in (1, 2, 2)]
            after_add = (await service.get(post.id)).average_rating
            after_delete = await service.feedback.delete(post.id, entries[0].id)
            for entry in entries[1:]:
                await service.feedback.delete(post.id, entry.id)
            after_all_deleted = (await service.get(post.id)).average_rating
            return after_add, after_delete, after_all_deleted

    after_add, after_delete, after_all_deleted = asyncio.run(_run())

    assert after_add == 1.7
    assert after_delete == 2.0
    assert after_all_deleted == 0.0


def test_explicit_excerpt_survives_title_change(session_factory, admin) -> None:
    async def _run():
        async with session_factory() as session:
            service = BlogService(session)
            post = await service.create(admin.id, _post_data(excerpt="Keep me"))
            return await service.update(post.id, {"title": "Curing Concrete in Winter"})

    post = asyncio.run(_run())

    assert post.excerpt == "Keep me"
    assert post.slug == "curing-concrete-in-winter"
