import asyncio

import pytest

from frame_explorer.exceptions import FrameIndexError
from frame_explorer.services.config_service import config
from frame_explorer.services.keyword_service import KeywordService


@pytest.fixture
def indexed_api(fake_api):
    fake_api.add_tag(70, "row", [12, 47, 88])
    fake_api.add_tag(71, "boat", [47, 90])
    fake_api.add_tag(72, "empty", [])
    return fake_api


def test_empty_selection_makes_no_request(keyword_service, fake_api):
    assert asyncio.run(keyword_service.resolve_frame_ids([])) == []
    assert fake_api.calls == []


def test_every_resolved_frame_carries_a_selected_tag(keyword_service, indexed_api):
    selected = {70, 71}
    frame_ids = asyncio.run(keyword_service.resolve_frame_ids(selected))

    assert frame_ids
    for frame_id in frame_ids:
        assert any(frame_id in indexed_api.tag_frames[tag_id] for tag_id in selected)


def test_resolution_removes_repeats_and_keeps_index_order(keyword_service, indexed_api):
    frame_ids = asyncio.run(keyword_service.resolve_frame_ids([70, 71]))

    assert frame_ids == [12, 47, 88, 90]


def test_resolving_twice_gives_the_same_set(keyword_service, indexed_api):
    first = asyncio.run(keyword_service.resolve_frame_ids([71, 70]))
    second = asyncio.run(keyword_service.resolve_frame_ids([71, 70]))

    assert set(first) == set(second)


def test_string_ids_are_accepted(keyword_service, indexed_api):
    assert asyncio.run(keyword_service.resolve_frame_ids(["70"])) == [12, 47, 88]


def test_confidence_bounds_are_fixed_to_full_range(keyword_service, indexed_api):
    asyncio.run(keyword_service.resolve_frame_ids([70], confidence_min=0.8, confidence_max=0.9))

    (tag_ids, confidence_min, confidence_max), = indexed_api.calls_to('resolve_frames')
    assert tag_ids == (70,)
    assert (confidence_min, confidence_max) == (0.0, 1.0)


def test_resolution_failure_raises_index_error(keyword_service, indexed_api):
    indexed_api.fail('resolve_frames')

    with pytest.raises(FrameIndexError, match="resolve_frames failed"):
        asyncio.run(keyword_service.resolve_frame_ids([70]))


def test_list_tags_keeps_server_counts(keyword_service, indexed_api):
    tags = asyncio.run(keyword_service.list_tags())

    assert [(tag.id, tag.name, tag.frame_count) for tag in tags] == [
        (70, "row", 3),
        (71, "boat", 2),
        (72, "empty", 0),
    ]


def test_list_tags_failure_raises_index_error(keyword_service, indexed_api):
    indexed_api.fail('list_tags')

    with pytest.raises(FrameIndexError):
        asyncio.run(keyword_service.list_tags())


def test_rename_and_delete_tag_on_frame(keyword_service, indexed_api):
    asyncio.run(keyword_service.rename_frame_tag(47, 70, "  rowing "))
    assert ('rename_frame_tag', (47, 70, "rowing")) in indexed_api.calls
    assert (70, "rowing") in indexed_api.frames[47]['tags']

    asyncio.run(keyword_service.delete_frame_tag(47, 71))
    assert all(tag_id != 71 for tag_id, _ in indexed_api.frames[47]['tags'])


def test_rename_rejects_blank_name(keyword_service, indexed_api):
    with pytest.raises(ValueError):
        asyncio.run(keyword_service.rename_frame_tag(47, 70, "   "))
    assert indexed_api.calls_to('rename_frame_tag') == []


def test_configured_confidence_cannot_narrow_resolution(monkeypatch, fake_api):
    fake_api.add_tag(70, "row", [12])
    monkeypatch.setattr(config, 'yaml', {**config.yaml, 'keywords': {'confidence_min': 0.3, 'confidence_max': 0.6}})
    service = KeywordService(fake_api)

    asyncio.run(service.resolve_frame_ids([70], confidence_min=0.5))

    assert fake_api.calls_to('resolve_frames') == [((70,), 0.0, 1.0)]
