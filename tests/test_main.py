import asyncio

import pytest

from frame_explorer import main as cli


def test_parser_reads_search_arguments():
    args = cli.build_parser().parse_args(['search', '70', '71', '--no-progressive'])

    assert args.command == 'search'
    assert args.tag_ids == [70, 71]
    assert args.no_progressive


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_run_search_prints_frames_and_albums(monkeypatch, capsys, search_service, fake_api):
    fake_api.add_tag(70, "row", [12, 47, 88])
    fake_api.add_album(1, 1, [1, 2, 47])
    monkeypatch.setattr(cli, 'search_service', search_service)

    exit_code = asyncio.run(cli.run_search([70], progressive=True))

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "frame  12" in out
    assert "album  1-1" in out
    assert "Done: 3 frame(s), 1 album(s)" in out


def test_run_search_fails_when_resolution_fails(monkeypatch, capsys, search_service, fake_api):
    fake_api.fail('resolve_frames')
    monkeypatch.setattr(cli, 'search_service', search_service)

    exit_code = asyncio.run(cli.run_search([70], progressive=True))

    assert exit_code == 1
    assert "resolve_frames failed" in capsys.readouterr().err


def test_status_command_exits_nonzero_when_unreachable(monkeypatch):
    monkeypatch.setattr(cli.config, 'yaml', {**cli.config.yaml, 'api': {**cli.config.yaml['api'], 'base_url': "http://127.0.0.1:1"}})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(['status', '--timeout', '1'])

    assert excinfo.value.code == 1
