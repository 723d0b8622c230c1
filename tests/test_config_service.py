from frame_explorer.services.config_service import DEFAULTS, _deep_merge, config


def test_deep_merge_keeps_unmentioned_defaults():
    merged = _deep_merge(DEFAULTS, {'frames': {'batch_size': 6}, 'extra': {'a': 1}})

    assert merged['frames']['batch_size'] == 6
    assert merged['frames']['first_page_size'] == 9
    assert merged['extra'] == {'a': 1}
    # The defaults themselves are untouched.
    assert DEFAULTS['frames']['batch_size'] == 18


def test_get_follows_dotted_paths():
    assert config.get('albums.tag_sample_size') == 5
    assert config.get('albums.no_such_key', 'fallback') == 'fallback'
    assert config.get('albums.tag_sample_size.deeper', 'fallback') == 'fallback'


def test_get_seconds_converts_milliseconds():
    assert config.get_seconds('frames.batch_delay_ms', 0) == 0.4
    assert config.get_seconds('frames.missing_ms', 250) == 0.25


def test_base_url_has_no_trailing_slash():
    assert not config.api_base_url.endswith('/')
