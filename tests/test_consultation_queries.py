import asyncio

from construction_api.services.consultation_queries import ConsultationQueries
from construction_api.services.consultation_service import ConsultationService


def _query(session_factory, func):
    async def _inner():
        async with session_factory() as session:
            return await func(ConsultationQueries(session))

    return asyncio.run(_inner())


def _set_status(session_factory, consultation_id, path, admin):
    async def _inner():
        for status in path:
            async with session_factory() as session:
                await ConsultationService(session).update_status(consultation_id, status, admin)

    asyncio.run(_inner())


def _seed(session_factory, owner, admin, make_consultation):
    """pending x2 (одна срочная), confirmed (срочная), completed, cancelled"""
    ids = {
        "pending": make_consultation(owner, service="residential", location="Springfield"),
        "pending_urgent": make_consultation(owner, service="renovation", project_type="Kitchen Remodel", is_urgent=True),
        "confirmed_urgent": make_consultation(owner, service="commercial", is_urgent=True),
        "completed": make_consultation(owner, service="industrial", location="Ogdenville"),
        "cancelled": make_consultation(owner, service="sustainability"),
    }
    _set_status(session_factory, ids["confirmed_urgent"], ["confirmed"], admin)
    _set_status(session_factory, ids["completed"], ["confirmed", "completed"], admin)
    _set_status(session_factory, ids["cancelled"], ["cancelled"], admin)
    return ids


def test_list_pending_returns_only_pending(session_factory, owner, admin, make_consultation) -> None:
    ids = _seed(session_factory, owner, admin, make_consultation)

    pending = _query(session_factory, lambda queries: queries.list_pending())

    assert {item.id for item in pending} == {ids["pending"], ids["pending_urgent"]}
    assert all(item.status == "pending" for item in pending)


def test_list_urgent_excludes_processed(session_factory, owner, admin, make_consultation) -> None:
    ids = _seed(session_factory, owner, admin, make_consultation)

    urgent = _query(session_factory, lambda queries: queries.list_urgent())

    assert [item.id for item in urgent] == [ids["pending_urgent"]]


def test_filter_all_sentinel_returns_everything(session_factory, owner, admin, make_consultation) -> None:
    ids = _seed(session_factory, owner, admin, make_consultation)

    everything = _query(session_factory, lambda queries: queries.list_by_filter(status="all", service="all"))
    no_filter = _query(session_factory, lambda queries: queries.list_by_filter())

    assert {item.id for item in everything} == set(ids.values())
    assert {item.id for item in no_filter} == set(ids.values())


def test_filter_combines_conditions(session_factory, owner, admin, make_consultation) -> None:
    ids = _seed(session_factory, owner, admin, make_consultation)

    by_status = _query(session_factory, lambda queries: queries.list_by_filter(status="completed"))
    by_both = _query(session_factory, lambda queries: queries.list_by_filter(status="pending", service="renovation"))
    mismatch = _query(session_factory, lambda queries: queries.list_by_filter(status="completed", service="renovation"))

    assert [item.id for item in by_status] == [ids["completed"]]
    assert [item.id for item in by_both] == [ids["pending_urgent"]]
    assert mismatch == []


def test_search_is_case_insensitive_over_text_fields(session_factory, owner, admin, make_consultation) -> None:
    ids = _seed(session_factory, owner, admin, make_consultation)

    by_project = _query(session_factory, lambda queries: queries.list_by_filter(search="kitchen"))
    by_location = _query(session_factory, lambda queries: queries.list_by_filter(search="OGDEN"))
    by_service = _query(session_factory, lambda queries: queries.list_by_filter(search="sustain"))
    combined = _query(session_factory, lambda queries: queries.list_by_filter(status="pending", search="ogden"))

    assert [item.id for item in by_project] == [ids["pending_urgent"]]
    assert [item.id for item in by_location] == [ids["completed"]]
    assert [item.id for item in by_service] == [ids["cancelled"]]
    assert combined == []


def test_search_treats_wildcards_literally(session_factory, owner, make_consultation) -> None:
    make_consultation(owner, project_type="Office fit-out")
    percent = make_consultation(owner, project_type="Budget 100% fixed")

    result = _query(session_factory, lambda queries: queries.list_by_filter(search="%"))

    assert [item.id for item in result] == [percent]


def test_stats_counts_sum_to_total(session_factory, owner, admin, make_consultation) -> None:
    _seed(session_factory, owner, admin, make_consultation)
    make_consultation(owner)

    result = _query(session_factory, lambda queries: queries.stats())
    stats = result["stats"]

    assert stats == {
        "total": 6,
        "pending": 3,
        "confirmed": 1,
        "completed": 1,
        "cancelled": 1,
        "urgent": 1,
    }
    assert stats["pending"] + stats["confirmed"] + stats["completed"] + stats["cancelled"] == stats["total"]
    assert len(result["recent"]) == 5


def test_stats_on_empty_table(session_factory) -> None:
    result = _query(session_factory, lambda queries: queries.stats())

    assert result["stats"]["total"] == 0
    assert result["stats"]["urgent"] == 0
    assert result["recent"] == []


def test_list_for_owner_only_returns_own(session_factory, owner, make_user, make_consultation) -> None:
    mine = make_consultation(owner)
    other = make_user()
    make_consultation(other)

    result = _query(session_factory, lambda queries: queries.list_for_owner(owner.id))

    assert [item.id for item in result] == [mine]
