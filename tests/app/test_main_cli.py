from __future__ import annotations

import pytest

from marksync import main as main_module
from marksync.config.http_resilience import ResilienceConfig
from marksync.config.store import RecordStoreConfig
from marksync.domain.errors import RecordNotFoundError, RefetchError
from tests.helpers.records import OWNER, make_record

CONFIG = RecordStoreConfig(
    base_url="https://bookmarks.test",
    access_token="token",
    owner_id=OWNER,
    resilience=ResilienceConfig(name="bookmarks-test"),
)


@pytest.fixture
def configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "get_record_store_config", lambda: CONFIG)


@pytest.mark.usefixtures("configured")
def test_list_prints_newest_first(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    records = (make_record("2", minutes=2, title="Newer"), make_record("1", title="Older"))

    async def fake_list(config: RecordStoreConfig) -> tuple[object, ...]:
        assert config is CONFIG
        return records

    monkeypatch.setattr(main_module, "list_bookmarks", fake_list)

    main_module.main(["list"])

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("2  2024-01-07 12:02  Newer")
    assert lines[1].endswith("<https://example.com/1>")


@pytest.mark.usefixtures("configured")
def test_add_passes_title_and_url(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    async def fake_add(title: str, url: str, config: RecordStoreConfig) -> tuple[object, ...]:
        captured.update(title=title, url=url)
        return ()

    monkeypatch.setattr(main_module, "add_bookmark", fake_add)

    main_module.main(["add", "Python", "https://python.org"])

    assert captured == {"title": "Python", "url": "https://python.org"}
    assert "No bookmarks yet." in capsys.readouterr().out


@pytest.mark.usefixtures("configured")
def test_failed_delete_exits_with_one(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    async def fake_delete(record_id: str, config: RecordStoreConfig) -> tuple[object, ...]:
        raise RecordNotFoundError(record_id)

    monkeypatch.setattr(main_module, "delete_bookmark", fake_delete)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["delete", "42"])

    assert excinfo.value.code == 1
    assert "Bookmark not found: 42" in capsys.readouterr().err


@pytest.mark.usefixtures("configured")
def test_failed_list_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(config: RecordStoreConfig) -> tuple[object, ...]:
        raise RefetchError("Refetch failed")

    monkeypatch.setattr(main_module, "list_bookmarks", fake_list)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["list"])

    assert excinfo.value.code == 1


def test_missing_configuration_exits_with_two(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    for name in ("MARKSYNC_API_URL", "MARKSYNC_ACCESS_TOKEN", "MARKSYNC_OWNER_ID"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["list"])

    assert excinfo.value.code == 2
    assert "MARKSYNC_API_URL" in capsys.readouterr().err


def test_unknown_command_exits_with_two() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["rename", "1"])

    assert excinfo.value.code == 2
