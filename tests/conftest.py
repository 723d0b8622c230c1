import pytest

from frame_explorer.services.album_service import AlbumService
from frame_explorer.services.batch_scheduler import BatchSchedule
from frame_explorer.services.frame_service import FrameService
from frame_explorer.services.keyword_service import KeywordService
from frame_explorer.services.search_service import SearchService
from frame_explorer.session_state import SearchSession
from tests.fakes import FakeFrameApi, VirtualClock


@pytest.fixture
def fake_api():
    return FakeFrameApi()


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def session():
    return SearchSession()


@pytest.fixture
def keyword_service(fake_api):
    return KeywordService(fake_api)


@pytest.fixture
def frame_service(fake_api, keyword_service, clock):
    return FrameService(
        fake_api,
        keyword_service,
        first_page_size=9,
        background_schedule=BatchSchedule(chunk_size=18, delay_seconds=0.4, fast_delay_seconds=0.2, fast_threshold=36),
        progressive=True,
        mime_type='image/jpeg',
        sleep=clock,
    )


@pytest.fixture
def album_service(fake_api, clock):
    return AlbumService(
        fake_api,
        max_albums_scanned_per_config=10,
        first_batch_size=2,
        background_schedule=BatchSchedule(chunk_size=2, delay_seconds=0.2),
        progressive=True,
        mime_type='image/jpeg',
        sleep=clock,
    )


@pytest.fixture
def search_service(keyword_service, frame_service, album_service):
    return SearchService(keyword_service, frame_service, album_service)
